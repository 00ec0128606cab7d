"""HTTP fetcher with status classification and linear backoff retries."""

import logging
import threading
import time
from typing import Callable, List, Optional

import requests

from sitesnap.config import SitesnapConfig
from sitesnap.core.errors import FetchError, TerminalFetchError, TransientFetchError

logger = logging.getLogger(__name__)

# Statuses worth another attempt; everything else >= 400 is terminal
RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class FetchResult:
    """Result of a fetch operation."""

    def __init__(
        self,
        url: str,
        content: Optional[bytes] = None,
        text: Optional[str] = None,
        status_code: Optional[int] = None,
        success: bool = False,
        error: Optional[FetchError] = None,
        attempts: int = 0,
    ):
        self.url = url
        self.content = content  # Raw body bytes
        self.text = text  # Decoded body
        self.status_code = status_code
        self.success = success
        self.error = error
        self.attempts = attempts

    @property
    def reached(self) -> bool:
        """True when the host produced any usable HTTP answer."""
        return self.success or isinstance(self.error, TerminalFetchError)

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, TerminalFetchError)

    def __repr__(self) -> str:
        state = "ok" if self.success else (self.error.error_code if self.error else "failed")
        return f"FetchResult({self.url!r}, {state}, status={self.status_code}, attempts={self.attempts})"


def classify_status(url: str, status_code: int) -> Optional[FetchError]:
    """
    Map an HTTP status to the error it represents.

    Args:
        url: URL that was requested
        status_code: HTTP status returned

    Returns:
        None for success, TransientFetchError for retryable statuses,
        TerminalFetchError for everything else at or above 400
    """
    if status_code < 400:
        return None
    if status_code in RETRYABLE_STATUSES or status_code >= 500:
        return TransientFetchError(url, "server error", status_code=status_code)
    if status_code in (403, 404):
        return TerminalFetchError(url, "not found" if status_code == 404 else "forbidden", status_code=status_code)
    return TerminalFetchError(url, "client error", status_code=status_code)


class PageFetcher:
    """Fetches URLs over HTTP, retrying transient failures.

    Each thread gets its own requests session. An injected session is
    shared by all threads instead.
    """

    def __init__(
        self,
        config: Optional[SitesnapConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the fetcher.

        Args:
            config: Settings for retries, backoff, timeout and user agent
            session: Optional requests session shared by all threads (one per thread is created if None)
            sleep: Sleep function used between retries
        """
        self.config = config or SitesnapConfig.from_env()
        self._shared_session = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        if session is not None:
            self._configure(session)
        self._sleep = sleep

    def _configure(self, session: requests.Session) -> requests.Session:
        session.headers.update(
            {
                "User-Agent": self.config.effective_user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.5",
            }
        )
        return session

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread."""
        if self._shared_session is not None:
            return self._shared_session

        session = getattr(self._local, "session", None)
        if session is None:
            session = self._configure(requests.Session())
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def get(self, url: str) -> requests.Response:
        """
        Perform one GET request.

        Raises:
            TransientFetchError: Timeout, transport failure, 5xx or 429
            TerminalFetchError: 404, 403 or another client error
        """
        try:
            response = self.session.get(url, timeout=self.config.timeout, allow_redirects=True)
        except requests.exceptions.Timeout as e:
            raise TransientFetchError(url, f"timeout: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransientFetchError(url, f"transport error: {e}") from e

        error = classify_status(url, response.status_code)
        if error is not None:
            raise error
        return response

    def fetch(self, url: str) -> FetchResult:
        """
        Fetch a URL, retrying transient failures with backoff.

        Terminal statuses return immediately. Exhausted retries return a
        failed result instead of raising.

        Args:
            url: URL to fetch

        Returns:
            FetchResult
        """
        max_retries = self.config.max_retries
        last_error: Optional[FetchError] = None

        for attempt in range(1, max_retries + 1):
            try:
                response = self.get(url)
                return FetchResult(
                    url=url,
                    content=response.content,
                    text=response.text,
                    status_code=response.status_code,
                    success=True,
                    attempts=attempt,
                )
            except TerminalFetchError as e:
                logger.info(f"{url} not available (HTTP {e.status_code}), not retrying")
                return FetchResult(url=url, status_code=e.status_code, error=e, attempts=attempt)
            except TransientFetchError as e:
                last_error = e
                if attempt < max_retries:
                    delay = self.config.backoff_base * attempt
                    logger.warning(
                        f"Attempt {attempt}/{max_retries} for {url} failed: {e.message}; retrying in {delay:.1f}s"
                    )
                    self._sleep(delay)
                else:
                    logger.warning(f"Giving up on {url} after {max_retries} attempts: {e.message}")

        return FetchResult(
            url=url,
            status_code=last_error.status_code if last_error else None,
            error=last_error,
            attempts=max_retries,
        )

    def close(self):
        if self._shared_session is not None:
            self._shared_session.close()
        with self._sessions_lock:
            for session in self._sessions:
                session.close()
            self._sessions.clear()
        self._local = threading.local()
