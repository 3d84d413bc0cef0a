# healui_search/analytics.py
# Fire-and-forget search analytics: submissions, result clicks, timings, render faults

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, MutableMapping, Optional

from healui_search.config import ENABLE_VERBOSE_LOGGING, MAX_TIMELINE_EVENTS

SEARCH_SUBMITTED = "search_submitted"
RESULT_SELECTED = "result_selected"
TIMING_COMPLETE = "timing_complete"
EXCEPTION = "exception"

TIMELINE_KEY = "_search_events"

# Keys that must never reach an analytics sink
SENSITIVE_KEYS = {
    "auth_token",
    "refresh_token",
    "password",
    "session_id",
    "token",
    "secret",
    "api_key",
}

Sink = Callable[[str, Dict[str, Any]], None]


def redact_value(key: str, value: Any) -> Any:
    """
    Redact sensitive values.
    - If key is sensitive: return "[REDACTED]"
    - Otherwise: return actual value
    """
    key_lower = key.lower()
    if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
        return "[REDACTED]"
    return value


def now_iso() -> str:
    """Return current timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SessionEventSink:
    """
    Appends events to a bounded timeline inside a session-state mapping.

    Keeps only the last ``max_events`` entries to prevent memory bloat.
    """

    def __init__(self, store: MutableMapping[str, Any], key: str = TIMELINE_KEY, max_events: int = MAX_TIMELINE_EVENTS) -> None:
        self.store = store
        self.key = key
        self.max_events = max_events

    def __call__(self, event_name: str, details: Dict[str, Any]) -> None:
        events = self.store.get(self.key)
        if events is None:
            events = []
            self.store[self.key] = events

        event: Dict[str, Any] = {"ts": now_iso(), "name": event_name}
        if details:
            event["details"] = {k: redact_value(k, v) for k, v in details.items()}
        events.append(event)

        if len(events) > self.max_events:
            self.store[self.key] = events[-self.max_events:]

    def recent(self, limit: int = 30) -> List[Dict[str, Any]]:
        """Most recent events first."""
        events = self.store.get(self.key, [])
        return list(reversed(events[-limit:]))

    def clear(self) -> None:
        if self.key in self.store:
            self.store[self.key] = []


class AnalyticsTracker:
    """
    Dispatches analytics events to every registered sink.

    Best-effort: a failing sink is logged and skipped; nothing raised here can
    reach the search state machine or the UI.
    """

    def __init__(self, sinks: Optional[Iterable[Sink]] = None) -> None:
        self.sinks: List[Sink] = list(sinks or [])
        self.failures = 0

    def add_sink(self, sink: Sink) -> None:
        self.sinks.append(sink)

    def track(self, event_name: str, details: Optional[Dict[str, Any]] = None) -> None:
        payload = dict(details or {})
        for sink in list(self.sinks):
            try:
                sink(event_name, payload)
            except Exception as e:
                self.failures += 1
                if ENABLE_VERBOSE_LOGGING:
                    print(f"[ANALYTICS] Sink failed for {event_name}: {type(e).__name__}")

    def search_submitted(self, query: str, active_filter_count: int) -> None:
        self.track(SEARCH_SUBMITTED, {"query": query, "active_filter_count": active_filter_count})

    def result_selected(self, result_id: str) -> None:
        self.track(RESULT_SELECTED, {"result_id": result_id})

    def timing_complete(self, name: str, value_ms: float) -> None:
        self.track(TIMING_COMPLETE, {"name": name, "value": round(value_ms)})

    def exception(self, description: str, fatal: bool = False) -> None:
        self.track(EXCEPTION, {"description": description, "fatal": fatal})
