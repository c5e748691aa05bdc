"""Search feed library modules.

This package contains the components of a polling search source: cursor
persistence, request building, fetching, response classification,
scheduling and the supporting resources they draw on.
"""

from searchfeed.lib.auth import ClientCredentials, OAuth2TokenProvider, build_auth_headers
from searchfeed.lib.builder import Resources, build_resources, build_search_source
from searchfeed.lib.cache import Cache, FileCache, MemoryCache, create_cache
from searchfeed.lib.classify import (
    DataBatch,
    EmptyBatch,
    FetchFailed,
    FetchOutcome,
    InvalidCursor,
    classify,
    is_invalid_cursor_error,
)
from searchfeed.lib.config import AppConfig, SearchConfig, config_from_dict, load_config
from searchfeed.lib.cursor import DEFAULT_CURSOR_KEY, CursorStore
from searchfeed.lib.durations import parse_duration
from searchfeed.lib.emitter import CollectingSink, JsonLinesSink, Sink, create_sink, split
from searchfeed.lib.env import expand_env_vars, expand_options, load_env_file
from searchfeed.lib.errors import (
    CacheError,
    CacheKeyNotFound,
    ConfigurationError,
    SearchFeedError,
    TokenError,
    TransportError,
)
from searchfeed.lib.fetcher import Fetcher
from searchfeed.lib.logging import JSONFormatter, PollerLogger, get_poller_logger, setup_logging
from searchfeed.lib.metrics import PollerMetrics
from searchfeed.lib.query import SEARCH_URL, build_search_url
from searchfeed.lib.rate_limiter import RateLimiter, create_rate_limiter
from searchfeed.lib.scheduler import (
    CronSchedule,
    FreeRunSchedule,
    IntervalSchedule,
    Schedule,
    build_schedule,
)
from searchfeed.lib.source import SearchSource, TickResult, TickStatus
from searchfeed.lib.transport import HttpTransport

__all__ = [
    # Auth
    "ClientCredentials",
    "OAuth2TokenProvider",
    "build_auth_headers",
    # Wiring
    "Resources",
    "build_resources",
    "build_search_source",
    # Caches and cursor
    "Cache",
    "FileCache",
    "MemoryCache",
    "create_cache",
    "CursorStore",
    "DEFAULT_CURSOR_KEY",
    # Classification
    "DataBatch",
    "EmptyBatch",
    "FetchFailed",
    "FetchOutcome",
    "InvalidCursor",
    "classify",
    "is_invalid_cursor_error",
    # Configuration
    "AppConfig",
    "SearchConfig",
    "config_from_dict",
    "load_config",
    "parse_duration",
    "expand_env_vars",
    "expand_options",
    "load_env_file",
    # Output
    "CollectingSink",
    "JsonLinesSink",
    "Sink",
    "create_sink",
    "split",
    # Errors
    "CacheError",
    "CacheKeyNotFound",
    "ConfigurationError",
    "SearchFeedError",
    "TokenError",
    "TransportError",
    # Fetching
    "Fetcher",
    "HttpTransport",
    "RateLimiter",
    "create_rate_limiter",
    "SEARCH_URL",
    "build_search_url",
    # Logging and metrics
    "JSONFormatter",
    "PollerLogger",
    "get_poller_logger",
    "setup_logging",
    "PollerMetrics",
    # Scheduling
    "CronSchedule",
    "FreeRunSchedule",
    "IntervalSchedule",
    "Schedule",
    "build_schedule",
    # Source
    "SearchSource",
    "TickResult",
    "TickStatus",
]
