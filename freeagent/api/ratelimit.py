"""Client-side throttling for the FreeAgent per-user rate limits.

The service allows 120 requests a minute, 3600 an hour, and 15 token
refreshes a minute per user. Exceeding any of them returns 429.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

logger = logging.getLogger(__name__)

REQUESTS_PER_MINUTE = 120
REQUESTS_PER_HOUR = 3600
REFRESHES_PER_MINUTE = 15


class SlidingWindow:
    """Counts events in a trailing window of ``period`` seconds."""

    def __init__(self, limit: int, period: float) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.period = period
        self._events: deque[float] = deque()

    def _expire(self, now: float) -> None:
        while self._events and self._events[0] <= now - self.period:
            self._events.popleft()

    def wait_time(self, now: float) -> float:
        """Seconds until another event fits in the window."""
        self._expire(now)
        if len(self._events) < self.limit:
            return 0.0
        return self._events[0] + self.period - now

    def record(self, now: float) -> None:
        self._events.append(now)


class RateLimiter:
    """Blocks callers until the request and refresh budgets allow another call.

    Args:
        per_minute: API requests allowed per minute.
        per_hour: API requests allowed per hour.
        refresh_per_minute: Token refreshes allowed per minute.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        per_minute: int = REQUESTS_PER_MINUTE,
        per_hour: int = REQUESTS_PER_HOUR,
        refresh_per_minute: int = REFRESHES_PER_MINUTE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._requests = [SlidingWindow(per_minute, 60.0), SlidingWindow(per_hour, 3600.0)]
        self._refreshes = [SlidingWindow(refresh_per_minute, 60.0)]
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    def _acquire(self, windows: list[SlidingWindow], label: str) -> float:
        waited = 0.0
        with self._lock:
            while True:
                now = self._clock()
                delay = max(window.wait_time(now) for window in windows)
                if delay <= 0:
                    for window in windows:
                        window.record(now)
                    return waited
                logger.debug("%s budget exhausted, waiting %.2fs", label, delay)
                self._sleep(delay)
                waited += delay

    def acquire(self) -> float:
        """Wait for an API request slot.

        Returns:
            Seconds spent waiting.
        """
        return self._acquire(self._requests, "Request")

    def acquire_refresh(self) -> float:
        """Wait for a token refresh slot.

        Returns:
            Seconds spent waiting.
        """
        return self._acquire(self._refreshes, "Token refresh")


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header value.

    Args:
        value: Delta-seconds (``"30"``) or an HTTP-date.
        now: Current time for HTTP-date values. Defaults to the UTC clock.

    Returns:
        Seconds to wait (never negative), or None if missing or unparsable.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    if now is None:
        now = datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())
