"""Cursor persistence for incremental searches.

The cursor is the id of the newest record a source has emitted. It is kept
in a cache resource under a configurable key so the next search (and the
next process, when the cache is persistent) asks only for newer records.

An empty stored value means "no cursor" and is how a reset is recorded.
"""

from __future__ import annotations

import logging
from typing import Optional

from searchfeed.lib.cache import Cache
from searchfeed.lib.errors import CacheError, CacheKeyNotFound

logger = logging.getLogger(__name__)

__all__ = ["CursorStore", "DEFAULT_CURSOR_KEY"]

DEFAULT_CURSOR_KEY = "last_tweet_id"


class CursorStore:
    """Typed access to the cursor held in a cache resource.

    Example:
        store = CursorStore(FileCache("./.state"))
        cursor = store.read()  # None on a fresh deployment
        ...
        store.write(records[-1]["id"])
    """

    def __init__(self, cache: Cache, key: str = DEFAULT_CURSOR_KEY) -> None:
        self.cache = cache
        self.key = key

    def read(self) -> Optional[str]:
        """Return the stored cursor, or None if there is none."""
        try:
            value = self.cache.get(self.key)
        except CacheKeyNotFound:
            # A fresh deployment has no prior cursor
            return None
        except CacheError as exc:
            logger.warning(
                "Could not read cursor '%s', searching from the backfill window: %s",
                self.key,
                exc.message,
            )
            return None

        if value is None or value == "":
            return None

        logger.debug("Read cursor %s=%s", self.key, value)
        return str(value)

    def write(self, value: str) -> bool:
        """Store a new cursor value.

        Failures are logged and reported through the return value. Records
        for the tick have already been emitted by the time the cursor is
        written, so the worst outcome is duplicate delivery next tick.
        """
        try:
            self.cache.set(self.key, value)
        except CacheError as exc:
            logger.error("Failed to write latest tweet ID to cache: %s", exc.message)
            return False

        logger.debug("Wrote cursor %s=%s", self.key, value)
        return True

    def reset(self) -> bool:
        """Clear the cursor so the next search starts from the backfill window."""
        return self.write("")
