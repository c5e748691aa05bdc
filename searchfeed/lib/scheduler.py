"""Tick scheduling for polling sources.

Three timing policies decide when the next tick starts:

    IntervalSchedule - a fixed period between tick starts ("1m", "30s")
    CronSchedule     - a crontab expression ("*/5 * * * *")
    FreeRunSchedule  - no wait at all; the rate limiter paces requests

All of them block in wait_next() and return False as soon as the stop
event is set, so shutdown never has to wait out a long sleep.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional

from apscheduler.triggers.cron import CronTrigger

from searchfeed.lib.durations import is_duration, parse_duration
from searchfeed.lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "Schedule",
    "IntervalSchedule",
    "CronSchedule",
    "FreeRunSchedule",
    "build_schedule",
]


class Schedule(ABC):
    """Decides when the next tick may start."""

    @abstractmethod
    def wait_next(self, stop_event: threading.Event) -> bool:
        """Block until the next tick is due.

        Returns:
            True if a tick should run now, False if stop was requested
        """
        ...

    @abstractmethod
    def describe(self) -> str:
        ...


class IntervalSchedule(Schedule):
    """Ticks every ``period``, measured from the start of the previous tick.

    The first tick starts immediately. A tick that overruns its period is
    followed directly by the next one; missed ticks are not replayed.
    """

    def __init__(
        self,
        period: timedelta,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if period.total_seconds() <= 0:
            raise ValueError("Poll period must be positive")
        self.period = period
        self._clock = clock
        self._last_start: Optional[float] = None

    def wait_next(self, stop_event: threading.Event) -> bool:
        if self._last_start is not None:
            due = self._last_start + self.period.total_seconds()
            remaining = due - self._clock()
            if remaining > 0 and stop_event.wait(remaining):
                return False

        if stop_event.is_set():
            return False

        self._last_start = self._clock()
        return True

    def describe(self) -> str:
        return f"every {self.period.total_seconds():g}s"


class CronSchedule(Schedule):
    """Ticks at the fire times of a crontab expression.

    Example:
        schedule = CronSchedule("*/15 * * * *")  # every quarter hour
    """

    def __init__(
        self,
        expression: str,
        *,
        tz: tzinfo = timezone.utc,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.expression = expression
        self.tz = tz
        self.trigger = CronTrigger.from_crontab(expression, timezone=tz)
        self._now = now or (lambda: datetime.now(self.tz))
        self._last_fire: Optional[datetime] = None

    def next_fire_time(self) -> Optional[datetime]:
        """First fire time from now on, never the one already used.

        Fire times missed while a tick overran are skipped, not replayed.
        """
        start = self._now()
        if self._last_fire is not None and start <= self._last_fire:
            start = self._last_fire + timedelta(seconds=1)
        return self.trigger.get_next_fire_time(None, start)

    def wait_next(self, stop_event: threading.Event) -> bool:
        fire_time = self.next_fire_time()
        if fire_time is None:
            logger.info("Cron schedule '%s' has no further fire times", self.expression)
            return False

        remaining = (fire_time - self._now()).total_seconds()
        if remaining > 0:
            logger.debug("Next tick at %s", fire_time.isoformat())
            if stop_event.wait(remaining):
                return False

        if stop_event.is_set():
            return False

        self._last_fire = fire_time
        return True

    def describe(self) -> str:
        return f"cron '{self.expression}'"


class FreeRunSchedule(Schedule):
    """Ticks back to back. Only valid together with a rate limiter."""

    def wait_next(self, stop_event: threading.Event) -> bool:
        return not stop_event.is_set()

    def describe(self) -> str:
        return "as fast as the rate limit allows"


def build_schedule(poll_period: str, *, has_rate_limit: bool) -> Schedule:
    """Pick the timing policy for a poll_period setting.

    An empty poll_period means free-running and requires a rate limit. A
    duration string gives an interval schedule. Anything else is treated as
    a crontab expression.

    Raises:
        ConfigurationError: If the combination is invalid
    """
    period = (poll_period or "").strip()

    if not period:
        if not has_rate_limit:
            raise ConfigurationError(
                "either a poll_period, a rate_limit, or both must be specified",
                field="poll_period",
            )
        return FreeRunSchedule()

    if is_duration(period):
        try:
            return IntervalSchedule(parse_duration(period))
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid poll_period: {exc}", field="poll_period", value=period
            ) from exc

    try:
        return CronSchedule(period)
    except ValueError as exc:
        raise ConfigurationError(
            f"poll_period is neither a duration nor a cron expression: {exc}",
            field="poll_period",
            value=period,
        ) from exc
