"""Per-series cooling-off set, cleared wholesale on a timer."""

import time
from datetime import timedelta
from typing import Callable, Optional

import structlog

logger = structlog.get_logger()


class SkipSet:
    """Series that are left alone until the window next elapses.

    This throttles how often a series is searched again after a release
    was submitted for it. Entries do not expire individually; once the
    window has passed since the last reset, every entry is dropped at once.
    """

    def __init__(
        self,
        window: timedelta,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window = window
        self._clock = clock
        self._series: set[int] = set()
        self._started = clock()

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, series_id: int) -> bool:
        return series_id in self._series

    def mark(self, series_id: int) -> None:
        """Skip a series until the next reset."""
        self._series.add(series_id)

    def should_skip(self, series_id: int) -> bool:
        return series_id in self._series

    def maybe_reset(self, now: Optional[float] = None) -> bool:
        """Clear every entry if the window has elapsed since the last reset.

        Returns:
            True if the set was reset
        """
        if now is None:
            now = self._clock()
        if now - self._started <= self.window.total_seconds():
            return False

        if self._series:
            logger.info("skip_set_reset", cleared=len(self._series))
        self._series.clear()
        self._started = now
        return True
