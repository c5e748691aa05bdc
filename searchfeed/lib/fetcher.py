"""One authenticated search request per tick.

The Fetcher waits on the rate-limit gate (when one is configured), attaches
OAuth2 credentials and hands the request to the transport. Failures are
returned as FetchOutcome values rather than raised; interpreting the body is
left to the classifier.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from searchfeed.lib.auth import OAuth2TokenProvider, build_auth_headers
from searchfeed.lib.classify import FetchOutcome
from searchfeed.lib.errors import TransportError
from searchfeed.lib.rate_limiter import RateLimiter
from searchfeed.lib.transport import HttpTransport

logger = logging.getLogger(__name__)

__all__ = ["Fetcher"]


class Fetcher:
    """Issues search requests, one at a time.

    fetch() returns None when shutdown was requested, either while waiting
    for the rate limiter or while the request was in flight. The caller must
    treat that tick as if it never happened.
    """

    def __init__(
        self,
        transport: HttpTransport,
        token_provider: Optional[OAuth2TokenProvider] = None,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        stop_event: Optional[threading.Event] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.transport = transport
        self.token_provider = token_provider
        self.rate_limiter = rate_limiter
        self.stop_event = stop_event or threading.Event()
        self.headers = dict(headers or {})

    def fetch(self, url: str) -> Optional[FetchOutcome]:
        if self.rate_limiter is not None:
            if not self.rate_limiter.acquire(stop_event=self.stop_event):
                logger.debug("Shutdown requested while waiting for rate limit")
                return None

        if self.stop_event.is_set():
            return None

        try:
            headers = build_auth_headers(self.token_provider, extra_headers=self.headers)
            body = self.transport.get(url, headers)
        except TransportError as exc:
            if exc.status_code == 401 and self.token_provider is not None:
                self.token_provider.invalidate()
            outcome = FetchOutcome.failure(exc.message, exc.status_code)
        else:
            outcome = FetchOutcome.success(body)

        if self.stop_event.is_set():
            logger.debug("Discarding search response received during shutdown")
            return None

        return outcome

    def close(self) -> None:
        self.transport.close()
        if self.token_provider is not None:
            self.token_provider.close()
