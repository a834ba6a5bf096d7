"""Logging configuration and setup.

One rotating log file plus console output for a whole CLI run. Region code
paths log through the root logger with a ``[region]`` prefix in the
message, so a single format serves every region.
"""

import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from catalog_sync.shared.constants import LOGGING

__all__ = [
    'LOG_FORMAT',
    'sanitize_url',
    'setup_logging',
]


LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# urllib3 logs every pooled connection at DEBUG
NOISY_LOGGERS = ('urllib3',)

_logging_lock = threading.Lock()


def _matching_file_handler(root: logging.Logger, log_path: Path, max_bytes: int, backup_count: int) -> Optional[RotatingFileHandler]:
    """Return the run's file handler if already installed; drop stale ones for the same file."""
    target = str(log_path.absolute())
    for handler in root.handlers[:]:
        if not isinstance(handler, RotatingFileHandler) or handler.baseFilename != target:
            continue
        if handler.maxBytes == max_bytes and handler.backupCount == backup_count:
            return handler
        root.removeHandler(handler)
        handler.close()
    return None


def _has_console_handler(root: logging.Logger) -> bool:
    # FileHandler subclasses StreamHandler
    return any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in root.handlers
    )


def setup_logging(
    log_file: str = "logs/catalog_sync.log",
    verbose: bool = False,
    max_bytes: int = LOGGING.MAX_BYTES,
    backup_count: int = LOGGING.BACKUP_COUNT,
) -> None:
    """Configure root logging for a CLI run.

    Safe to call repeatedly or from several threads: handlers are only
    added once per log file. The level is reapplied on every call, so a
    later ``verbose=True`` call switches an existing setup to DEBUG.

    Args:
        log_file: Path to log file
        verbose: Log at DEBUG instead of INFO
        max_bytes: Maximum file size before rotation
        backup_count: Number of backup files to keep
    """
    with _logging_lock:
        root = logging.getLogger()
        root.setLevel(logging.DEBUG if verbose else logging.INFO)
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        log_path = Path(log_file)
        formatter = logging.Formatter(LOG_FORMAT)

        if _matching_file_handler(root, log_path, max_bytes, backup_count) is None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8',
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        if not _has_console_handler(root):
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            root.addHandler(console_handler)


def sanitize_url(url: str) -> str:
    """Redact query parameters from URL for safe logging.

    Args:
        url: URL to sanitize

    Returns:
        URL with scheme, host and path kept and the query replaced by [REDACTED]
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return "[INVALID_URL]"
    if not parsed.scheme or not parsed.netloc:
        return "[INVALID_URL]"
    safe_url = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
    if parsed.query:
        safe_url += "?[REDACTED]"
    return safe_url
