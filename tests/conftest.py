"""Pytest configuration and fixtures."""

import logging
import sys
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, List, Optional

import httpx
import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from searchfeed.lib.auth import ClientCredentials, OAuth2TokenProvider  # noqa: E402
from searchfeed.lib.cache import MemoryCache  # noqa: E402
from searchfeed.lib.cursor import CursorStore  # noqa: E402
from searchfeed.lib.fetcher import Fetcher  # noqa: E402
from searchfeed.lib.scheduler import FreeRunSchedule  # noqa: E402
from searchfeed.lib.source import SearchSource  # noqa: E402
from searchfeed.lib.transport import HttpTransport  # noqa: E402
from tests.helpers import FIXED_NOW, FakeClock, FakeSearchAPI  # noqa: E402


@pytest.fixture
def fake_api() -> FakeSearchAPI:
    return FakeSearchAPI()


@pytest.fixture
def http_client(fake_api: FakeSearchAPI):
    client = httpx.Client(transport=httpx.MockTransport(fake_api))
    yield client
    client.close()


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def cursor_store(memory_cache: MemoryCache) -> CursorStore:
    return CursorStore(memory_cache)


@pytest.fixture
def stop_event() -> threading.Event:
    return threading.Event()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_fetcher(http_client: httpx.Client, stop_event: threading.Event):
    """Build a Fetcher that talks to the fake API without sleeping."""

    def factory(rate_limiter: Any = None) -> Fetcher:
        transport = HttpTransport(
            client=http_client,
            stop_event=stop_event,
            sleep=lambda seconds: None,
        )
        token_provider = OAuth2TokenProvider(
            ClientCredentials(client_key="fookey", client_secret="foosecret"),
            client=http_client,
        )
        return Fetcher(
            transport,
            token_provider,
            rate_limiter=rate_limiter,
            stop_event=stop_event,
        )

    return factory


@pytest.fixture
def make_source(make_fetcher, cursor_store: CursorStore, stop_event: threading.Event):
    """Build a SearchSource wired to the fake API with a frozen clock."""

    def factory(
        query: str = "warpstreamlabs",
        fields: Optional[List[str]] = None,
        backfill: timedelta = timedelta(seconds=300),
        store: Optional[CursorStore] = None,
        schedule: Any = None,
        rate_limiter: Any = None,
        **kwargs: Any,
    ) -> SearchSource:
        return SearchSource(
            query=query,
            fields=fields or [],
            backfill=backfill,
            cursor_store=store or cursor_store,
            fetcher=make_fetcher(rate_limiter),
            schedule=schedule or FreeRunSchedule(),
            stop_event=stop_event,
            now=FIXED_NOW,
            **kwargs,
        )

    return factory


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger after the test."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
