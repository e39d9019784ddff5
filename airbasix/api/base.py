"""
Shared HTTP plumbing for the Airtable and Wix Data clients.

Both services enforce rate limits, so every request goes through
_request, which retries rate limits, server errors, timeouts and dropped
connections with exponential backoff.
"""

import logging
import threading
import time
from typing import Any

import requests

from airbasix.exceptions import AirbasixError

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 60.0  # seconds

# HTTP timeout per request
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds

# Status codes retried with backoff
RATE_LIMIT_STATUSES = (429,)

logger = logging.getLogger(__name__)


class APIError(AirbasixError):
    """Raised when a remote API operation fails."""

    code = "api_error"

    def __init__(
        self,
        message: str = "API request failed",
        code: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, code)
        self.status_code = status_code


class RateLimitError(APIError):
    """Raised when rate limit is exceeded and retries are exhausted."""

    code = "rate_limited"


class BaseAPIClient:
    """
    Base class for JSON-over-HTTP API clients.

    Subclasses set ``service_name``, ``error_class`` and
    ``rate_limit_error_class`` and implement ``_headers``.

    Each thread gets its own requests.Session, so one client instance can
    be shared by the record worker pool.
    """

    service_name = "api"
    error_class: type[APIError] = APIError
    rate_limit_error_class: type[APIError] = RateLimitError

    def __init__(
        self,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
    ):
        self.request_timeout = request_timeout
        self.max_retries = max(1, max_retries)
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._local = threading.local()

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    @property
    def session(self) -> requests.Session:
        """Get or create this thread's HTTP session."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers())
            self._local.session = session
        return session

    def _error(self, message: str, suffix: str, status: int | None = None) -> APIError:
        return self.error_class(
            message, code=f"{self.service_name}_{suffix}", status_code=status
        )

    def _request(
        self,
        method: str,
        url: str,
        operation_name: str,
        timeout: float | None = None,
        idempotent: bool = True,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Execute a request with exponential backoff retry.

        Non-idempotent requests are only retried when the server cannot
        have acted on them: connect timeouts and 429 responses. Read
        timeouts, dropped connections and 5xx responses fail immediately.

        Args:
            method: HTTP method
            url: Full request URL
            operation_name: Name for logging purposes
            timeout: Override for the per-request timeout
            idempotent: False for requests that must not be replayed
            **kwargs: Passed to requests.Session.request (params, json)

        Returns:
            Decoded JSON response body ({} for empty bodies)

        Raises:
            RateLimitError subclass: If retries are exhausted due to rate limits
            APIError subclass: For other failures
        """
        delay = self.initial_retry_delay
        timeout = timeout if timeout is not None else self.request_timeout

        for attempt in range(self.max_retries):
            last_attempt = attempt >= self.max_retries - 1
            try:
                response = self.session.request(method, url, timeout=timeout, **kwargs)
            except requests.Timeout as e:
                # A connect timeout means the request never reached the server
                replayable = idempotent or isinstance(e, requests.ConnectTimeout)
                if replayable and not last_attempt:
                    logger.warning(
                        f"{operation_name} timed out, retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue
                raise self._error(f"{operation_name} timed out: {e}", "timeout") from e
            except requests.ConnectionError as e:
                if idempotent and not last_attempt:
                    logger.warning(
                        f"{operation_name} connection failed, retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue
                raise self._error(
                    f"{operation_name} connection failed: {e}", "connection_error"
                ) from e
            except requests.RequestException as e:
                raise self._error(
                    f"{operation_name} failed: {e}", "request_error"
                ) from e

            status_code = response.status_code

            if status_code in RATE_LIMIT_STATUSES:
                if not last_attempt:
                    logger.warning(
                        f"{operation_name} rate limited, retrying in "
                        f"{delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue
                raise self.rate_limit_error_class(
                    f"Rate limit exceeded for {operation_name} "
                    f"after {self.max_retries} retries",
                    code=f"{self.service_name}_rate_limited",
                    status_code=status_code,
                )

            if status_code >= 500 and idempotent and not last_attempt:
                logger.warning(
                    f"{operation_name} server error ({status_code}), "
                    f"retrying in {delay:.1f}s"
                )
                time.sleep(delay)
                delay = min(delay * 2, self.max_retry_delay)
                continue

            if status_code >= 400:
                detail = _error_detail(response)
                logger.debug(f"{operation_name} failed with status {status_code}: {detail}")
                raise self._error(
                    f"{operation_name} failed with status {status_code}: {detail}",
                    f"http_{status_code}",
                    status_code,
                )

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise self._error(
                    f"{operation_name} returned invalid JSON: {e}", "invalid_response"
                ) from e

        # Should not reach here, but just in case
        raise self._error(f"{operation_name} failed after all retries", "retries_exhausted")


def _error_detail(response: requests.Response) -> str:
    """Extract a short error description from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or "no details"

    if isinstance(body, dict):
        error = body.get("error") or body.get("message") or body.get("details")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("type") or error)
        if error:
            return str(error)
    return str(body)[:200]
