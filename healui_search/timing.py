"""
healui_search/timing.py
Round-trip timer for search executions.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from healui_search.config import ENABLE_VERBOSE_LOGGING


class PerformanceTimer:
    """
    Measures elapsed milliseconds between ``start`` and ``stop``.

    ``start`` returns its mark so overlapping requests can each be stopped
    against their own start; ``stop`` without a mark uses the latest one.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.perf_counter,
        on_complete: Optional[Callable[[str, float], None]] = None,
    ) -> None:
        self.clock = clock
        self.on_complete = on_complete
        self._started_at: Optional[float] = None
        self.last_duration_ms: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def start(self) -> float:
        self._started_at = self.clock()
        return self._started_at

    def stop(self, event_name: str, started_at: Optional[float] = None) -> float:
        """Stop and report. Stopping a timer that never started reports 0."""
        mark = started_at if started_at is not None else self._started_at
        if mark is None:
            return 0.0
        duration = (self.clock() - mark) * 1000.0
        if started_at is None or started_at == self._started_at:
            self._started_at = None
        self.last_duration_ms = duration

        if ENABLE_VERBOSE_LOGGING:
            print(f"[TIMING] {event_name}: {duration:.2f}ms")
        if self.on_complete is not None:
            self.on_complete(event_name, duration)
        return duration
