"""
healui_search/error_boundary.py

Isolates rendering failures in the results area from the rest of the page.

Only the results subtree is wrapped; the search bar keeps working when a
single result card blows up. A caught fault is reported (telemetry callback
and analytics) and replaced with a recovery panel offering a reload.
"""

from __future__ import annotations

import traceback
from typing import Any, Callable, Optional

from healui_search.analytics import AnalyticsTracker
from healui_search.config import ENABLE_VERBOSE_LOGGING

RECOVERY_TITLE = "Something went wrong"
RECOVERY_MESSAGE = "We're sorry, but something unexpected happened. Our team has been notified."


class ErrorBoundary:
    def __init__(
        self,
        render_fallback: Callable[["ErrorBoundary"], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        analytics: Optional[AnalyticsTracker] = None,
    ) -> None:
        self.render_fallback = render_fallback
        self.on_error = on_error
        self.analytics = analytics
        self.error: Optional[Exception] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def render(self, render_fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run ``render_fn`` inside the boundary.

        Once tripped, the boundary keeps showing the recovery panel until
        ``reset()`` (the reload action) is called.
        """
        if self.has_error:
            self.render_fallback(self)
            return None
        try:
            return render_fn(*args, **kwargs)
        except Exception as e:
            self._record(e)
            self.render_fallback(self)
            return None

    def reset(self) -> None:
        self.error = None

    def _record(self, error: Exception) -> None:
        self.error = error
        if ENABLE_VERBOSE_LOGGING:
            print(f"[BOUNDARY] Results render failed: {type(error).__name__}: {error}")
            traceback.print_exception(type(error), error, error.__traceback__)

        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception as report_error:
                if ENABLE_VERBOSE_LOGGING:
                    print(f"[BOUNDARY] Error reporter failed: {type(report_error).__name__}")
        if self.analytics is not None:
            self.analytics.exception(str(error) or type(error).__name__, fatal=False)
