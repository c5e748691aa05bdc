"""Splitting batches into records and delivering them to an output.

A batch becomes one outgoing record per element of the response's data
array, in array order. Records are passed through unchanged.
"""

from __future__ import annotations

import json
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Union

from searchfeed.lib.classify import DataBatch, EmptyBatch
from searchfeed.lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "split",
    "Sink",
    "JsonLinesSink",
    "CollectingSink",
    "create_sink",
]

Record = Dict[str, Any]


def split(batch: Union[DataBatch, EmptyBatch]) -> List[Record]:
    """Return the records of a batch, one per data array element."""
    if isinstance(batch, EmptyBatch):
        return []
    return list(batch.records)


class Sink(ABC):
    """Destination for emitted records."""

    @abstractmethod
    def write(self, record: Record) -> None:
        ...

    def flush(self) -> None:
        """Make previously written records durable."""

    def close(self) -> None:
        self.flush()

    def __call__(self, record: Record) -> None:
        self.write(record)

    def __enter__(self) -> "Sink":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class JsonLinesSink(Sink):
    """Writes each record as one line of JSON.

    Example:
        with JsonLinesSink.open("./tweets.jsonl") as sink:
            source.run(sink)
    """

    def __init__(self, stream: IO[str], *, owns_stream: bool = False) -> None:
        self.stream = stream
        self._owns_stream = owns_stream

    @classmethod
    def open(cls, path: Union[str, Path]) -> "JsonLinesSink":
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        return cls(target.open("a", encoding="utf-8"), owns_stream=True)

    def write(self, record: Record) -> None:
        self.stream.write(json.dumps(record, ensure_ascii=False))
        self.stream.write("\n")

    def flush(self) -> None:
        self.stream.flush()

    def close(self) -> None:
        self.flush()
        if self._owns_stream:
            self.stream.close()


class CollectingSink(Sink):
    """Keeps records in memory."""

    def __init__(self) -> None:
        self.records: List[Record] = []

    def write(self, record: Record) -> None:
        self.records.append(record)


def create_sink(options: Optional[Dict[str, Any]]) -> Sink:
    """Create an output sink from its configuration block.

    Expected shape:
        {"stdout": {}}                      (default)
        {"file": {"path": "./tweets.jsonl"}}
    """
    if not options or "stdout" in options:
        return JsonLinesSink(sys.stdout)

    if "file" in options:
        path = (options.get("file") or {}).get("path")
        if not path:
            raise ConfigurationError("output.file.path is required", field="output.file.path")
        logger.info("Writing records to %s", path)
        return JsonLinesSink.open(path)

    raise ConfigurationError(
        "output must define one of: stdout, file", field="output"
    )
