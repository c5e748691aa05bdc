"""Test doubles shared across the unit tests."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from searchfeed.lib.auth import TOKEN_URL
from searchfeed.lib.cache import Cache
from searchfeed.lib.errors import CacheError, CacheKeyNotFound

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

INVALID_SINCE_ID_BODY = {
    "errors": [
        {
            "parameters": {"since_id": ["2"]},
            "message": (
                "Invalid 'since_id':'2'. 'since_id' must be a tweet id created "
                "after 2024-01-08T12:00:00Z. Please use a 'start_time' instead"
            ),
        }
    ],
    "title": "Invalid Request",
    "detail": "One or more parameters to your request was invalid.",
    "type": "https://api.twitter.com/2/problems/invalid-request",
}

QueuedResponse = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeSearchAPI:
    """Stands in for the token and recent-search endpoints.

    Search responses are served in the order they were queued. Every search
    request is recorded for later inspection.
    """

    def __init__(self) -> None:
        self.search_responses: List[QueuedResponse] = []
        self.search_requests: List[httpx.Request] = []
        self.token_requests: List[httpx.Request] = []
        self.token_response: Optional[httpx.Response] = None

    def queue(self, status_code: int = 200, body: Any = None, **kwargs: Any) -> None:
        if isinstance(body, (dict, list)):
            self.search_responses.append(httpx.Response(status_code, json=body, **kwargs))
        else:
            self.search_responses.append(
                httpx.Response(status_code, text=body or "", **kwargs)
            )

    def queue_data(self, *ids: str) -> None:
        self.queue(
            200,
            {
                "data": [{"id": i, "text": f"tweet {i}"} for i in ids],
                "meta": {"result_count": len(ids)},
            },
        )

    def queue_callable(self, fn: Callable[[httpx.Request], httpx.Response]) -> None:
        self.search_responses.append(fn)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            self.token_requests.append(request)
            if self.token_response is not None:
                return self.token_response
            return httpx.Response(
                200, json={"token_type": "bearer", "access_token": "test-token"}
            )

        self.search_requests.append(request)
        if not self.search_responses:
            return httpx.Response(200, json={"meta": {"result_count": 0}})
        queued = self.search_responses.pop(0)
        if isinstance(queued, httpx.Response):
            return queued
        return queued(request)

    @property
    def last_params(self) -> Dict[str, str]:
        return dict(self.search_requests[-1].url.params)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStopEvent:
    """threading.Event stand-in whose wait() advances a fake clock."""

    def __init__(
        self,
        clock: Optional[FakeClock] = None,
        on_wait: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.clock = clock
        self.on_wait = on_wait
        self.waits: List[float] = []
        self._set = False

    def is_set(self) -> bool:
        return self._set

    def set(self) -> None:
        self._set = True

    def wait(self, timeout: Optional[float] = None) -> bool:
        self.waits.append(timeout if timeout is not None else -1)
        if self.clock is not None and timeout is not None:
            self.clock.advance(timeout)
        if self.on_wait is not None:
            self.on_wait(timeout or 0)
        return self._set


class FailingCache(Cache):
    """Cache whose writes always fail; reads behave like an empty cache."""

    def __init__(self, value: Optional[str] = None) -> None:
        self.value = value
        self.set_attempts: List[str] = []

    def get(self, key: str) -> str:
        if self.value is None:
            raise CacheKeyNotFound(key)
        return self.value

    def set(self, key: str, value: str) -> None:
        self.set_attempts.append(value)
        raise CacheError("backend unavailable", key=key)


def read_json_lines(path: Path) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in path.read_text().splitlines() if line]
