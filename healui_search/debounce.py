"""
healui_search/debounce.py

Clock-driven debouncer. Streamlit has no timers between reruns, so the
pending value is promoted on ``poll()`` once the quiet window has elapsed.
"""

from __future__ import annotations

import time
from typing import Callable, Generic, Optional, TypeVar

from healui_search.config import SUGGESTION_DEBOUNCE_MS

T = TypeVar("T")

_NOTHING = object()


class Debouncer(Generic[T]):
    """Exposes a settled value that only changes after input is stable for ``delay_ms``."""

    def __init__(
        self,
        initial: T,
        delay_ms: int = SUGGESTION_DEBOUNCE_MS,
        clock: Callable[[], float] = time.monotonic,
        on_settle: Optional[Callable[[T], None]] = None,
    ) -> None:
        self.delay = delay_ms / 1000.0
        self.clock = clock
        self.on_settle = on_settle
        self.settled: T = initial
        self._pending = _NOTHING
        self._deadline = 0.0

    @property
    def pending(self) -> bool:
        return self._pending is not _NOTHING

    def push(self, value: T) -> None:
        """Record new input and restart the quiet window. Repeating the current input is a no-op."""
        if self.pending:
            if value == self._pending:
                return
        elif value == self.settled:
            return
        self._pending = value
        self._deadline = self.clock() + self.delay

    def poll(self) -> bool:
        """Settle the pending value if its window elapsed. Returns True when it settled."""
        if not self.pending or self.clock() < self._deadline:
            return False
        value = self._pending
        self._pending = _NOTHING
        if value == self.settled:
            return False
        self.settled = value  # type: ignore[assignment]
        if self.on_settle is not None:
            self.on_settle(self.settled)
        return True

    def cancel(self) -> None:
        self._pending = _NOTHING
