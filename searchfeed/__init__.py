"""Incremental, resumable polling of the Twitter recent-search API.

Each poll asks only for tweets newer than the last one received, using a
cursor kept in a cache resource, and emits every tweet as a JSON record.

Usage:
    python -m searchfeed ./search.yaml
    python -m searchfeed ./search.yaml --once
"""

__version__ = "1.0.0"

from searchfeed.lib.config import AppConfig, SearchConfig, load_config
from searchfeed.lib.source import SearchSource, TickResult, TickStatus

__all__ = [
    "__version__",
    "AppConfig",
    "SearchConfig",
    "load_config",
    "SearchSource",
    "TickResult",
    "TickStatus",
]
