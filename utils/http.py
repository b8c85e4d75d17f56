"""HTTP and download utilities for the release mirror.

Provides reusable pieces for:
- Session creation with connection pooling, auth headers and urllib3 retries
- Downloading a single remote file with bounded retries and exponential backoff
"""

import logging
import os
import time
from pathlib import Path
from typing import Optional, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry as URLRetry


logger = logging.getLogger(__name__)

USER_AGENT = "release-mirror"

# Suffix of the in-progress file written next to the destination
PARTIAL_SUFFIX = ".part"


class DownloadError(Exception):
    """Raised when every download attempt for one resource has failed."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException]):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to download {url} after {attempts} attempt(s): {last_error}"
        )


class RetryStrategy:
    """Defines retry behavior for API requests made through a session."""

    def __init__(self, max_retries: int = 3, backoff_factor: float = 1.0,
                 status_forcelist: Optional[List[int]] = None):
        """Initialize retry strategy.

        Args:
            max_retries: Maximum number of retry attempts (default: 3)
            backoff_factor: Exponential backoff multiplier (default: 1.0)
            status_forcelist: HTTP status codes to retry on
                            (default: [429, 500, 502, 503, 504])
        """
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.status_forcelist = status_forcelist or [429, 500, 502, 503, 504]

    def get_retry_object(self) -> URLRetry:
        """Get urllib3 Retry object configured with this strategy."""
        return URLRetry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.status_forcelist,
            allowed_methods=["GET", "HEAD"]
        )


def build_headers(token: Optional[str] = None) -> dict:
    """Return the headers sent with every authenticated request."""
    headers = {"User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"token {token}"
    return headers


class SessionManager:
    """Manages an HTTP session with auth headers, pooling and retries."""

    def __init__(self, token: Optional[str] = None,
                 retry_strategy: Optional[RetryStrategy] = None,
                 pool_connections: int = 10, pool_maxsize: int = 20):
        """Initialize session manager.

        Args:
            token: Bearer credential attached to every request (optional)
            retry_strategy: RetryStrategy to use (default: standard strategy)
            pool_connections: Number of connection pools to cache
            pool_maxsize: Maximum number of connections per pool
        """
        self.token = token
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.pool_connections = pool_connections
        self.pool_maxsize = pool_maxsize
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        """Get or create the HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(build_headers(self.token))

            adapter = HTTPAdapter(
                max_retries=self.retry_strategy.get_retry_object(),
                pool_connections=self.pool_connections,
                pool_maxsize=self.pool_maxsize
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

        return self._session

    def close(self) -> None:
        """Close the session and release resources."""
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def backoff_delay(attempt: int, base: float) -> float:
    """Delay to wait after failed attempt number *attempt* (1-based)."""
    return base * (2 ** (attempt - 1))


def _fetch_once(session: requests.Session, url: str, part_path: Path,
                headers: dict, timeout: float, chunk_size: int) -> int:
    resp = session.get(url, headers=headers, timeout=timeout, stream=True)
    try:
        resp.raise_for_status()
        written = 0
        with open(part_path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if chunk:
                    f.write(chunk)
                    written += len(chunk)
        return written
    finally:
        resp.close()


def download_file(url: str, dest_path: Path, token: Optional[str] = None,
                  session: Optional[requests.Session] = None,
                  max_retries: int = 3, backoff_base: float = 1.0,
                  timeout: float = 120, chunk_size: int = 65536) -> int:
    """Download *url* to *dest_path*, retrying with exponential backoff.

    Each attempt streams into ``<dest>.part`` and the part file is renamed
    over the destination only after the whole body has arrived, so a failed
    attempt never leaves a truncated file at *dest_path*.  There is no
    resume: every attempt starts from byte zero.

    Args:
        url: Download locator
        dest_path: Local path to save to.  The parent directory must exist.
        token: Credential sent as ``Authorization: token ...``
        session: Optional requests.Session (default: new session)
        max_retries: Total number of attempts (default: 3)
        backoff_base: Seconds to wait after the first failed attempt;
                      doubles after each further failure
        timeout: Per-request timeout in seconds
        chunk_size: Size of chunks to read

    Returns:
        Number of bytes written.

    Raises:
        DownloadError: After all attempts have failed.
    """
    if session is None:
        session = requests.Session()

    dest_path = Path(dest_path)
    part_path = dest_path.with_name(f".{dest_path.name}{PARTIAL_SUFFIX}")
    headers = build_headers(token)
    attempts = max(1, max_retries)
    last_exc: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            written = _fetch_once(session, url, part_path, headers, timeout, chunk_size)
            os.replace(part_path, dest_path)
            return written
        except (requests.RequestException, OSError) as e:
            last_exc = e
            logger.warning("Download attempt %d/%d failed for %s: %s",
                           attempt, attempts, dest_path.name, e)
            if part_path.exists():
                part_path.unlink()
        if attempt < attempts:
            delay = backoff_delay(attempt, backoff_base)
            logger.info("Retrying %s in %.1fs", dest_path.name, delay)
            time.sleep(delay)

    raise DownloadError(url, attempts, last_exc)
