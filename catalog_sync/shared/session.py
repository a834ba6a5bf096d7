"""HTTP session with cookie continuity, warm-up and cooldowns.

requests.Session is NOT thread-safe, so each worker thread gets its own
session instance. All of them share one cookie jar, which is what carries
the cross-request state (cookies set by the warm-up request against the site
root) between workers. ``http.cookiejar.CookieJar`` serializes access with
its own lock.

One ``FetchSession`` exists per run: created before the main pass, warmed
up, and closed when the run ends.
"""

import logging
import random
import threading
import time
from types import TracebackType
from typing import Callable, Dict, List, Optional, Sequence, Type

import requests
from requests.cookies import RequestsCookieJar

from catalog_sync.shared.constants import HTTP
from catalog_sync.shared.logging_config import sanitize_url
from catalog_sync.shared.request_counter import CooldownSchedule, RequestCounter

__all__ = [
    'DEFAULT_USER_AGENTS',
    'FetchSession',
    'get_headers',
]


DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
]


def get_headers(
    user_agent: Optional[str] = None,
    referer: Optional[str] = None,
    accept_language: str = "en-US,en;q=0.9",
) -> Dict[str, str]:
    """Get browser-like request headers.

    Args:
        user_agent: User agent string (random if not provided)
        referer: Referer header value (omitted if not provided)
        accept_language: Accept-Language header value

    Returns:
        Dictionary of HTTP headers
    """
    headers = {
        "User-Agent": user_agent or random.choice(DEFAULT_USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": accept_language,
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Upgrade-Insecure-Requests": "1",
        "Connection": "keep-alive",
    }
    if referer:
        headers["Referer"] = referer
    return headers


class FetchSession:
    """Per-run HTTP state shared by all fetch workers.

    Args:
        site_root: URL requested by ``warm_up`` to establish baseline cookies
        referers: Referer values rotated per request (site_root if empty)
        accept_language: Accept-Language header for every request
        timeout: Per-request timeout in seconds
        cooldown: When to pause and re-run warm-up
        session_factory: Creates the per-thread ``requests.Session``
        sleep: Sleep function (injectable for tests)
        label: Log prefix, usually the region code
    """

    def __init__(
        self,
        site_root: str,
        referers: Sequence[str] = (),
        accept_language: str = "en-US,en;q=0.9",
        timeout: float = HTTP.TIMEOUT,
        cooldown: Optional[CooldownSchedule] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
        label: str = "",
    ):
        self.site_root = site_root
        self.referers: List[str] = list(referers) or [site_root]
        self.accept_language = accept_language
        self.timeout = timeout
        self.cooldown = cooldown or CooldownSchedule()
        self.counter = RequestCounter()
        self.cookies = RequestsCookieJar()
        self.label = label
        self._session_factory = session_factory
        self._sleep = sleep
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._pause_lock = threading.Lock()
        self._resume_at = 0.0

    def _session(self) -> requests.Session:
        session = getattr(self._local, 'session', None)
        if session is None:
            session = self._session_factory()
            session.cookies = self.cookies
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def headers(self, referer: Optional[str] = None) -> Dict[str, str]:
        return get_headers(
            referer=referer or random.choice(self.referers),
            accept_language=self.accept_language,
        )

    def warm_up(self) -> bool:
        """Request the site root so the shared jar holds baseline cookies.

        A failed warm-up is logged and the run continues without cookies.

        Returns:
            True if the site root answered with a non-error status
        """
        try:
            response = self._session().get(
                self.site_root,
                headers=self.headers(referer=self.site_root),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logging.warning(f"[{self.label}] Warm-up failed for {sanitize_url(self.site_root)}: {e}")
            return False
        ok = response.status_code < 400
        logging.info(
            f"[{self.label}] Warm-up {sanitize_url(self.site_root)} -> HTTP {response.status_code}, "
            f"{len(self.cookies)} cookie(s)"
        )
        return ok

    def record_attempt(self) -> int:
        """Count one attempt and schedule a cooldown if one is due.

        Returns:
            The run-wide attempt count after this attempt
        """
        count = self.counter.increment()
        duration = self.cooldown.cooldown_for(count, self.label)
        if duration:
            with self._pause_lock:
                self._resume_at = max(self._resume_at, time.monotonic() + duration)
            self.wait_if_paused()
            self.warm_up()
        return count

    def wait_if_paused(self) -> None:
        """Block while a run-wide cooldown is in progress."""
        with self._pause_lock:
            remaining = self._resume_at - time.monotonic()
        if remaining > 0:
            self._sleep(remaining)

    def get(self, url: str) -> requests.Response:
        """GET a URL with rotated referer, shared cookies and the run timeout."""
        return self._session().get(
            url,
            headers=self.headers(),
            timeout=self.timeout,
            allow_redirects=True,
        )

    def close(self) -> None:
        with self._sessions_lock:
            for session in self._sessions:
                session.close()
            self._sessions.clear()

    def __enter__(self) -> "FetchSession":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
