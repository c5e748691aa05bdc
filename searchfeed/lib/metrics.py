"""Counters for a running search source."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict

from searchfeed.lib.logging import PollerLogger

__all__ = ["PollerMetrics"]


@dataclass
class PollerMetrics:
    """Running totals for one source.

    records_received and errors correspond to the input_received and
    input_error counters reported by other inputs.
    """

    ticks: int = 0
    records_received: int = 0
    errors: int = 0
    cursor_resets: int = 0
    cursor_write_failures: int = 0
    cancelled_ticks: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def summary(self) -> Dict[str, int]:
        with self._lock:
            return {
                "ticks": self.ticks,
                "records_received": self.records_received,
                "errors": self.errors,
                "cursor_resets": self.cursor_resets,
                "cursor_write_failures": self.cursor_write_failures,
                "cancelled_ticks": self.cancelled_ticks,
            }

    def log(self, logger: PollerLogger) -> None:
        """Write every counter as a METRIC log line."""
        for name, value in self.summary().items():
            logger.metric(name, value)
