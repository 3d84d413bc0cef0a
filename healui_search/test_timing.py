# healui_search/test_timing.py
# Unit tests for the performance timer

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from healui_search.timing import PerformanceTimer


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestPerformanceTimer:
    def test_reports_milliseconds(self):
        clock = FakeClock(1.0)
        reported = []
        timer = PerformanceTimer(clock=clock, on_complete=lambda name, ms: reported.append((name, ms)))
        timer.start()
        assert timer.running
        clock.now = 1.25
        assert timer.stop("search_execution") == 250.0
        assert reported == [("search_execution", 250.0)]
        assert not timer.running
        assert timer.last_duration_ms == 250.0

    def test_stop_without_start_reports_zero(self):
        reported = []
        timer = PerformanceTimer(clock=FakeClock(), on_complete=lambda *a: reported.append(a))
        assert timer.stop("never_started") == 0.0
        assert reported == []

    def test_overlapping_marks(self):
        clock = FakeClock(1.0)
        timer = PerformanceTimer(clock=clock)
        first = timer.start()
        clock.now = 2.0
        second = timer.start()
        clock.now = 3.0
        assert timer.stop("first", first) == 2000.0
        assert timer.running
        assert timer.stop("second", second) == 1000.0
        assert not timer.running
