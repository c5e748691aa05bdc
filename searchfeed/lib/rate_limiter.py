"""Rate limiting for search requests.

Provides a token-bucket rate limiter and a registry of named rate-limit
resources so that several sources can share one API quota.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from searchfeed.lib.durations import parse_duration
from searchfeed.lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ["RateLimiter", "create_rate_limiter"]


class RateLimiter:
    """Token-bucket rate limiter.

    Limits the rate of operations to a specified number per second.
    Thread-safe for concurrent usage, so one instance can gate every source
    that draws on the same quota.

    Example:
        limiter = RateLimiter(requests_per_second=1)

        while running:
            limiter.acquire()  # Blocks until allowed
            make_api_call()
    """

    def __init__(
        self,
        requests_per_second: float,
        *,
        burst_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum sustained rate
            burst_size: Maximum burst capacity (defaults to 1)
            clock: Monotonic time source
        """
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.rate = requests_per_second
        self.burst_size = burst_size or 1
        self._clock = clock
        self.tokens = float(self.burst_size)
        self.last_update = clock()
        self._lock = threading.Lock()

    def acquire(
        self,
        timeout: Optional[float] = None,
        *,
        stop_event: Optional[threading.Event] = None,
    ) -> bool:
        """Acquire a token, blocking until available.

        Args:
            timeout: Maximum time to wait (None = wait forever)
            stop_event: Abort the wait as soon as this event is set

        Returns:
            True if token acquired, False if timeout expired or stop was requested
        """
        start_time = self._clock()

        while True:
            if stop_event is not None and stop_event.is_set():
                return False

            with self._lock:
                self._refill_tokens()

                if self.tokens >= 1:
                    self.tokens -= 1
                    return True

                wait_time = (1 - self.tokens) / self.rate

            if timeout is not None:
                elapsed = self._clock() - start_time
                if elapsed + wait_time > timeout:
                    return False

            # Cap wait at 100ms increments
            pause = min(wait_time, 0.1)
            if stop_event is not None:
                if stop_event.wait(pause):
                    return False
            else:
                time.sleep(pause)

    def _refill_tokens(self) -> None:
        now = self._clock()
        elapsed = now - self.last_update
        self.tokens = min(
            self.burst_size,
            self.tokens + elapsed * self.rate,
        )
        self.last_update = now


def create_rate_limiter(label: str, options: Dict[str, Any]) -> RateLimiter:
    """Create a rate-limit resource from its configuration block.

    Expected shape:
        {"local": {"count": 450, "interval": "15m"}}

    Allows ``count`` requests per ``interval``, with bursts of up to
    ``count`` requests.

    Raises:
        ConfigurationError: If the block is malformed
    """
    local = options.get("local")
    if not isinstance(local, dict):
        raise ConfigurationError(
            f"Rate limit resource '{label}' must define a 'local' block",
            field=f"rate_limit_resources.{label}",
        )

    count = local.get("count", 1)
    interval = str(local.get("interval", "1s"))

    try:
        seconds = parse_duration(interval).total_seconds()
    except ValueError as exc:
        raise ConfigurationError(
            f"Rate limit resource '{label}' has an invalid interval: {exc}",
            field=f"rate_limit_resources.{label}.local.interval",
            value=interval,
        ) from exc

    if not isinstance(count, int) or count < 1 or seconds <= 0:
        raise ConfigurationError(
            f"Rate limit resource '{label}' needs a positive count and interval",
            field=f"rate_limit_resources.{label}.local",
        )

    logger.debug("Rate limit '%s': %d requests per %s", label, count, interval)
    return RateLimiter(count / seconds, burst_size=count)
