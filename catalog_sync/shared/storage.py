"""JSON array storage for source, master and snapshot files.

Writes are atomic (temp file + rename) so an interrupted checkpoint never
leaves a truncated master behind. Reads are strict: a file that exists but
cannot be parsed raises ``CatalogLoadError`` instead of silently returning
an empty list, because treating a corrupt master as empty would rewrite it
without its history.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Union

import ijson

from catalog_sync.shared.constants import STREAMING
from catalog_sync.shared.errors import CatalogLoadError

__all__ = [
    'dump_json',
    'load_json_array',
    'write_json_atomic',
]


PathLike = Union[str, Path]


def dump_json(data: Any) -> str:
    """Render JSON exactly as it is written to disk."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_json_atomic(data: Any, filepath: PathLike) -> None:
    """Write JSON using atomic write (temp file + rename).

    Args:
        data: Data to save (will be JSON serialized)
        filepath: Destination path

    Raises:
        OSError: If filesystem operations fail
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file must live in the destination directory for os.replace to be atomic
    temp_fd, temp_path = tempfile.mkstemp(
        suffix='.tmp',
        dir=path.parent,
        prefix=path.name + '.'
    )
    try:
        with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
            f.write(dump_json(data))
        os.replace(temp_path, str(path))
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise
    logging.debug(f"Wrote {filepath}")


def _load_streaming(path: Path) -> List[Any]:
    with open(path, 'rb') as f:
        # ijson.items yields nothing for a non-array top level
        first = next(ijson.parse(f), None)
        if first is None or (first[0], first[1]) != ('', 'start_array'):
            kind = first[1] if first else 'nothing'
            raise CatalogLoadError(str(path), f"expected a JSON array, got {kind}")
        f.seek(0)
        return list(ijson.items(f, 'item', use_float=True))


def load_json_array(filepath: PathLike, required: bool = True) -> List[Dict[str, Any]]:
    """Load a JSON array of objects.

    For files larger than 50MB, uses the ijson streaming parser.

    Args:
        filepath: Path to the JSON file
        required: When False, a missing file yields an empty list

    Returns:
        The parsed list

    Raises:
        CatalogLoadError: If the file is missing (and required), unreadable,
            not valid JSON, or not a JSON array
    """
    path = Path(filepath)
    if not path.exists():
        if required:
            raise CatalogLoadError(str(path), "file not found")
        logging.info(f"No existing file at {path}; starting empty")
        return []

    try:
        if path.stat().st_size > STREAMING.LARGE_FILE_THRESHOLD_BYTES:
            logging.info(f"Loading {path} with streaming parser ({path.stat().st_size / 1024 / 1024:.1f}MB)")
            data = _load_streaming(path)
        else:
            with open(path, 'r', encoding='utf-8') as f:
                raw = f.read()
            if not raw.strip():
                if required:
                    raise CatalogLoadError(str(path), "file is empty")
                return []
            data = json.loads(raw)
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogLoadError(str(path), f"unreadable ({e})") from e
    except (json.JSONDecodeError, ijson.JSONError) as e:
        raise CatalogLoadError(str(path), f"invalid JSON ({e})") from e

    if not isinstance(data, list):
        raise CatalogLoadError(str(path), f"expected a JSON array, got {type(data).__name__}")
    return data
