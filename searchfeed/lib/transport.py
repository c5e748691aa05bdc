"""HTTP transport for search requests.

Issues GET requests with httpx, retrying transient failures (429, 5xx and
network errors) with exponential backoff. Any response that is still not
2xx after retries is raised as a TransportError whose message includes the
response body, because the search API explains rejected requests there.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

import httpx
import requests_toolbelt
import tenacity
from requests_toolbelt.utils.user_agent import user_agent
from tenacity import (
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from searchfeed import __version__
from searchfeed.lib.errors import TransportError

logger = logging.getLogger(__name__)

__all__ = ["HttpTransport", "RETRYABLE_STATUS_CODES", "USER_AGENT"]

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Longest Retry-After we are willing to wait for
MAX_RETRY_AFTER_SECONDS = 60.0

USER_AGENT = user_agent(
    "searchfeed",
    __version__,
    extras=[
        ("httpx", getattr(httpx, "__version__", "unknown")),
        ("tenacity", getattr(tenacity, "__version__", "unknown")),
        ("requests-toolbelt", getattr(requests_toolbelt, "__version__", "unknown")),
    ],
)


class HttpTransport:
    """Performs authenticated GET requests on behalf of a Fetcher.

    Example:
        transport = HttpTransport(timeout=10.0)
        body = transport.get(url, headers={"Authorization": "Bearer ..."})
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        client: Optional[httpx.Client] = None,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._client = client
        self._owns_client = client is None
        self.stop_event = stop_event
        self._sleep = sleep or self._interruptible_sleep

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _interruptible_sleep(self, seconds: float) -> None:
        if self.stop_event is not None:
            self.stop_event.wait(seconds)
        else:
            time.sleep(seconds)

    def _stopped(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def get(self, url: str, headers: Dict[str, str]) -> bytes:
        """Fetch url and return the response body.

        Raises:
            TransportError: For network failures and non-2xx responses
        """
        request_headers = dict(headers)
        request_headers.setdefault("User-Agent", USER_AGENT)

        retrying = tenacity.Retrying(
            stop=stop_after_attempt(max(self.max_retries, 1)),
            wait=self._wait_strategy(),
            retry=retry_if_exception(self._should_retry),
            reraise=True,
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        try:
            response = retrying(self._do_request, url, request_headers)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise TransportError(
                f"HTTP request returned unexpected response code ({status}): "
                f"{exc.response.text}",
                status_code=status,
                url=url,
                cause=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"HTTP request failed: {exc}", url=url, cause=exc
            ) from exc

        return response.content

    def _do_request(self, url: str, headers: Dict[str, str]) -> httpx.Response:
        logger.debug("GET %s", url)
        response = self._get_client().get(url, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        return response

    def _should_retry(self, exc: BaseException) -> bool:
        if self._stopped():
            return False
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code in RETRYABLE_STATUS_CODES
        return isinstance(exc, httpx.RequestError)

    def _wait_strategy(self) -> Callable[[tenacity.RetryCallState], float]:
        """Backoff between attempts, replaced by the server's Retry-After on a 429."""
        backoff = wait_exponential(multiplier=self.backoff_factor, min=0.5, max=30)

        def wait(retry_state: tenacity.RetryCallState) -> float:
            outcome = retry_state.outcome
            exc = outcome.exception() if outcome is not None else None
            if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
                retry_after = _retry_after_seconds(exc.response)
                if retry_after is not None:
                    logger.warning(
                        "Rate limited by API; waiting %.1f seconds before retrying",
                        retry_after,
                    )
                    return retry_after
            return backoff(retry_state)

        return wait

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    """Parse a numeric Retry-After header, capped at MAX_RETRY_AFTER_SECONDS."""
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        seconds = float(retry_after)
    except ValueError:
        return None
    if seconds <= 0:
        return None
    return min(seconds, MAX_RETRY_AFTER_SECONDS)
