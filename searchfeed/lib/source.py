"""Incremental recent-search source.

A SearchSource turns the paginated search API into a stream of records. Each
tick reads the cursor, builds the request, fetches, classifies the response
and then does exactly one of:

    EMIT            records are emitted in order, then the cursor advances
                    to the id of the last one
    RESET_AND_DROP  the API rejected the cursor as too old; the cursor is
                    cleared and nothing is emitted
    REPORT_ERROR    the fetch failed; the error is reported and the cursor
                    is left alone
    NOOP            nothing new since the cursor

Ticks run strictly one after another, so each tick sees the cursor written
by the one before it.

Delivery is at-least-once: if the process stops after records were emitted
but before the cursor was written, the next run emits them again.

Example:
    source = SearchSource(
        query="warpstreamlabs",
        fields=[],
        backfill=timedelta(minutes=5),
        cursor_store=CursorStore(FileCache("./.state")),
        fetcher=Fetcher(HttpTransport(), token_provider),
        schedule=IntervalSchedule(timedelta(minutes=1)),
    )
    with JsonLinesSink.open("./tweets.jsonl") as sink:
        source.run(sink)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from searchfeed.lib.classify import (
    EmptyBatch,
    FetchFailed,
    InvalidCursor,
    classify,
)
from searchfeed.lib.cursor import CursorStore
from searchfeed.lib.emitter import Sink, split
from searchfeed.lib.fetcher import Fetcher
from searchfeed.lib.logging import get_poller_logger
from searchfeed.lib.metrics import PollerMetrics
from searchfeed.lib.query import SEARCH_URL, NowSource, build_search_url
from searchfeed.lib.scheduler import Schedule

__all__ = ["SearchSource", "TickResult", "TickStatus"]

Record = Dict[str, Any]
Emit = Callable[[Record], None]


class TickStatus(Enum):
    """How a tick ended."""

    EMIT = "emit"
    RESET_AND_DROP = "reset_and_drop"
    REPORT_ERROR = "report_error"
    NOOP = "noop"
    CANCELLED = "cancelled"


@dataclass
class TickResult:
    """Outcome of a single tick."""

    status: TickStatus
    url: Optional[str] = None
    records: List[Record] = field(default_factory=list)
    cursor: Optional[str] = None
    cursor_written: bool = True
    error: Optional[str] = None

    @property
    def record_count(self) -> int:
        return len(self.records)


class SearchSource:
    """Polls a search endpoint and emits new records."""

    def __init__(
        self,
        *,
        query: str,
        fields: Sequence[str],
        backfill: timedelta,
        cursor_store: CursorStore,
        fetcher: Fetcher,
        schedule: Schedule,
        base_url: str = SEARCH_URL,
        stop_event: Optional[threading.Event] = None,
        now: Optional[NowSource] = None,
        metrics: Optional[PollerMetrics] = None,
        on_error: Optional[Callable[[TickResult], None]] = None,
    ) -> None:
        self.query = query
        self.fields = list(fields)
        self.backfill = backfill
        self.cursor_store = cursor_store
        self.fetcher = fetcher
        self.schedule = schedule
        self.base_url = base_url
        self.stop_event = stop_event or fetcher.stop_event
        self.now = now
        self.metrics = metrics or PollerMetrics()
        self.on_error = on_error

        self.log = get_poller_logger(__name__)
        self.log.set_context(source="twitter_search", query=query)

    def stop(self) -> None:
        """Request shutdown. Waits in progress return promptly."""
        self.stop_event.set()

    def close(self) -> None:
        self.fetcher.close()

    def tick(self, emit: Optional[Emit] = None) -> TickResult:
        """Run one read-fetch-classify-advance-emit cycle.

        Args:
            emit: Called once per record, in order, before the cursor moves

        Returns:
            TickResult describing what happened
        """
        self.metrics.increment("ticks")

        cursor = self.cursor_store.read()
        url = build_search_url(
            self.query,
            self.fields,
            self.backfill,
            cursor,
            now=self.now,
            base_url=self.base_url,
        )
        if cursor:
            self.log.debug("Searching for records after %s", cursor)
        else:
            self.log.debug(
                "No cursor, searching the last %.0fs", self.backfill.total_seconds()
            )

        outcome = self.fetcher.fetch(url)
        if outcome is None:
            self.metrics.increment("cancelled_ticks")
            return TickResult(TickStatus.CANCELLED, url=url, cursor=cursor)

        result = classify(outcome)

        if isinstance(result, InvalidCursor):
            self.log.info("Cursor %s rejected by the search API, resetting it", cursor)
            written = self.cursor_store.reset()
            self.metrics.increment("cursor_resets")
            if not written:
                self.metrics.increment("cursor_write_failures")
            return TickResult(
                TickStatus.RESET_AND_DROP, url=url, cursor=None, cursor_written=written
            )

        if isinstance(result, FetchFailed):
            self.metrics.increment("errors")
            self.log.error("Search request failed: %s", result.message)
            tick_result = TickResult(
                TickStatus.REPORT_ERROR, url=url, cursor=cursor, error=result.message
            )
            if self.on_error is not None:
                self.on_error(tick_result)
            return tick_result

        if isinstance(result, EmptyBatch):
            self.log.debug("No new records")
            return TickResult(TickStatus.NOOP, url=url, cursor=cursor)

        records = split(result)
        if emit is not None:
            for record in records:
                emit(record)
            if isinstance(emit, Sink):
                emit.flush()
        self.metrics.increment("records_received", len(records))
        self.log.info("Emitted %d records", len(records))

        new_cursor = self._last_id(records)
        if new_cursor is None:
            self.log.error("Last record has no 'id', cursor left at %s", cursor)
            self.metrics.increment("cursor_write_failures")
            return TickResult(
                TickStatus.EMIT,
                url=url,
                records=records,
                cursor=cursor,
                cursor_written=False,
            )

        written = self.cursor_store.write(new_cursor)
        if not written:
            self.metrics.increment("cursor_write_failures")

        return TickResult(
            TickStatus.EMIT,
            url=url,
            records=records,
            cursor=new_cursor,
            cursor_written=written,
        )

    @staticmethod
    def _last_id(records: List[Record]) -> Optional[str]:
        last = records[-1]
        if not isinstance(last, dict) or last.get("id") in (None, ""):
            return None
        return str(last["id"])

    def run(self, emit: Optional[Emit] = None, *, max_ticks: Optional[int] = None) -> PollerMetrics:
        """Run ticks on the schedule until stopped.

        Args:
            emit: Called for every emitted record
            max_ticks: Stop after this many ticks (None = run until stopped)

        Returns:
            The source's metrics
        """
        self.log.info("Starting search source, polling %s", self.schedule.describe())
        ticks_run = 0

        while max_ticks is None or ticks_run < max_ticks:
            if not self.schedule.wait_next(self.stop_event):
                break

            result = self.tick(emit)
            ticks_run += 1

            if result.status is TickStatus.CANCELLED:
                break

        self.log.info("Search source stopped after %d ticks", ticks_run)
        self.metrics.log(self.log)
        return self.metrics

