"""Cache resources for persisting source state.

A cache is a small key/value store addressed by string keys. Sources use it
to hold their pagination cursor so that a restarted process resumes where
the previous one stopped. Use a persistent cache (the file cache) for that
to work across restarts.

Two backends are provided:
    - MemoryCache: process-local dict, useful for tests and one-off runs
    - FileCache: one JSON document per key in a state directory

Both raise CacheKeyNotFound from get() when a key has never been set.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from searchfeed.lib.errors import CacheError, CacheKeyNotFound, ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "Cache",
    "MemoryCache",
    "FileCache",
    "create_cache",
    "DEFAULT_STATE_DIR",
]

# Default state directory - can be overridden via environment variable
DEFAULT_STATE_DIR = ".state"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class Cache(ABC):
    """Base class for cache resources."""

    @abstractmethod
    def get(self, key: str) -> str:
        """Return the value stored under key.

        Raises:
            CacheKeyNotFound: If the key does not exist
            CacheError: If the backend cannot be read
        """
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value.

        Raises:
            CacheError: If the value could not be stored
        """
        ...

    def describe(self) -> str:
        return type(self).__name__


class MemoryCache(Cache):
    """In-process cache. Thread-safe, lost on exit."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        # YAML reads bare tweet ids as integers; values are always strings here
        self._values: Dict[str, str] = {
            key: "" if value is None else str(value)
            for key, value in (initial or {}).items()
        }
        self._lock = threading.Lock()

    def get(self, key: str) -> str:
        with self._lock:
            try:
                return self._values[key]
            except KeyError:
                raise CacheKeyNotFound(key) from None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def describe(self) -> str:
        return "memory"


class FileCache(Cache):
    """Cache holding one JSON file per key in a state directory.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a reader never observes a partially written value.

    Example:
        cache = FileCache("./.state")
        cache.set("last_tweet_id", "1460323737035677698")
        cache.get("last_tweet_id")
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None) -> None:
        if directory is None:
            directory = os.environ.get("SEARCHFEED_STATE_DIR", DEFAULT_STATE_DIR)
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        if not _UNSAFE_KEY_CHARS.search(key):
            return self.directory / f"{key}.json"
        # Keys that differ only in unsafe characters must not share a file
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        safe_key = _UNSAFE_KEY_CHARS.sub("_", key)
        return self.directory / f"{safe_key}-{digest}.json"

    def get(self, key: str) -> str:
        path = self._path_for(key)

        if not path.exists():
            raise CacheKeyNotFound(key)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CacheError(
                f"Could not read cache file {path}", key=key, cause=exc
            ) from exc

        if not isinstance(data, dict) or "value" not in data:
            raise CacheError(f"Invalid cache file {path}", key=key)

        logger.debug(
            "Read cache key %s from %s (updated %s)",
            key,
            path,
            data.get("updated_at", "unknown"),
        )
        return str(data["value"])

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        data = {
            "key": key,
            "value": value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.directory), prefix=f".{path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise CacheError(
                f"Could not write cache file {path}", key=key, cause=exc
            ) from exc

        logger.debug("Wrote cache key %s to %s", key, path)

    def describe(self) -> str:
        return f"file:{self.directory}"


def create_cache(label: str, options: Dict[str, Any]) -> Cache:
    """Create a cache resource from its configuration block.

    Expected shape (exactly one backend key):
        {"memory": {}}
        {"file": {"directory": "./.state"}}

    Raises:
        ConfigurationError: If the block names no known backend
    """
    backends = [name for name in ("memory", "file") if name in options]
    if len(backends) != 1:
        raise ConfigurationError(
            f"Cache resource '{label}' must define exactly one of: memory, file",
            field=f"cache_resources.{label}",
        )

    backend = backends[0]
    backend_options = options.get(backend) or {}

    if backend == "memory":
        return MemoryCache(backend_options.get("initial"))

    return FileCache(backend_options.get("directory"))
