"""Wiring a validated configuration into a running source.

Resources (caches, rate limits) are created once and handed to every source
that names them, so sources sharing a rate-limit label share one quota.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from searchfeed.lib.auth import ClientCredentials, OAuth2TokenProvider
from searchfeed.lib.cache import Cache, create_cache
from searchfeed.lib.config import AppConfig, SearchConfig
from searchfeed.lib.cursor import CursorStore
from searchfeed.lib.errors import ConfigurationError
from searchfeed.lib.fetcher import Fetcher
from searchfeed.lib.rate_limiter import RateLimiter, create_rate_limiter
from searchfeed.lib.scheduler import build_schedule
from searchfeed.lib.source import SearchSource
from searchfeed.lib.transport import HttpTransport

logger = logging.getLogger(__name__)

__all__ = ["Resources", "build_resources", "build_search_source"]


@dataclass
class Resources:
    """Named resources available to sources."""

    caches: Dict[str, Cache] = field(default_factory=dict)
    rate_limiters: Dict[str, RateLimiter] = field(default_factory=dict)

    def cache(self, label: str) -> Cache:
        try:
            return self.caches[label]
        except KeyError:
            raise ConfigurationError(
                f"cache resource '{label}' is not defined", field="cache"
            ) from None

    def rate_limiter(self, label: str) -> Optional[RateLimiter]:
        if not label:
            return None
        try:
            return self.rate_limiters[label]
        except KeyError:
            raise ConfigurationError(
                f"rate limit resource '{label}' is not defined", field="rate_limit"
            ) from None


def build_resources(config: AppConfig) -> Resources:
    """Create every cache and rate-limit resource the configuration declares."""
    resources = Resources()

    for label, options in config.cache_resources.items():
        resources.caches[label] = create_cache(label, options)
        logger.debug("Created cache resource '%s' (%s)", label, resources.caches[label].describe())

    for label, options in config.rate_limit_resources.items():
        resources.rate_limiters[label] = create_rate_limiter(label, options)
        logger.debug("Created rate limit resource '%s'", label)

    return resources


def build_search_source(
    search: SearchConfig,
    resources: Resources,
    *,
    stop_event: Optional[threading.Event] = None,
    client: Optional[httpx.Client] = None,
) -> SearchSource:
    """Build a SearchSource from its configuration and shared resources.

    Args:
        search: Validated source configuration
        resources: Caches and rate limiters to draw from
        stop_event: Shared shutdown signal (a new one is created if omitted)
        client: HTTP client to use for both token and search requests

    Raises:
        ConfigurationError: If a referenced resource is missing or the
            schedule is invalid
    """
    stop_event = stop_event or threading.Event()
    rate_limiter = resources.rate_limiter(search.rate_limit)
    schedule = build_schedule(search.poll_period, has_rate_limit=rate_limiter is not None)

    token_provider = OAuth2TokenProvider(
        ClientCredentials(
            client_key=search.api_key,
            client_secret=search.api_secret,
            token_url=search.token_url,
        ),
        client=client,
        timeout=search.timeout,
    )
    transport = HttpTransport(
        timeout=search.timeout,
        max_retries=search.max_retries,
        client=client,
        stop_event=stop_event,
    )
    fetcher = Fetcher(
        transport,
        token_provider,
        rate_limiter=rate_limiter,
        stop_event=stop_event,
    )

    logger.info(
        "Built %s: cache=%s key=%s rate_limit=%s schedule=%s",
        search.describe(),
        search.cache,
        search.cache_key,
        search.rate_limit or "none",
        schedule.describe(),
    )

    return SearchSource(
        query=search.query,
        fields=search.tweet_fields,
        backfill=search.backfill,
        cursor_store=CursorStore(resources.cache(search.cache), search.cache_key),
        fetcher=fetcher,
        schedule=schedule,
        base_url=search.base_url,
        stop_event=stop_event,
    )
