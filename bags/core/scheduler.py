"""Interval trigger for background market refreshes."""

import time
from typing import Callable, Optional

from .config import MIN_REFRESH_SECS


class RefreshScheduler:
    """
    Decides on each idle tick whether a scheduled refresh is due.

    The timer restarts when a refresh is attempted, not when it succeeds, so a
    failing provider is polled once per interval rather than on every tick.
    Nothing is due before the first attempt has been recorded.
    """

    def __init__(self, interval_secs: int = 60, clock: Callable[[], float] = time.monotonic):
        self._interval = interval_secs
        self.clock = clock
        self.last_attempt: Optional[float] = None
        self.last_success: Optional[float] = None

    @property
    def interval(self) -> int:
        return max(MIN_REFRESH_SECS, self._interval)

    @interval.setter
    def interval(self, value: int) -> None:
        self._interval = value

    def due(self, now: Optional[float] = None) -> bool:
        if self.last_attempt is None:
            return False
        now = self.clock() if now is None else now
        return now - self.last_attempt >= self.interval

    def mark_attempt(self, now: Optional[float] = None) -> None:
        self.last_attempt = self.clock() if now is None else now

    def mark_success(self, now: Optional[float] = None) -> None:
        self.last_success = self.clock() if now is None else now
