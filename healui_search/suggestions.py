"""
healui_search/suggestions.py

Query suggestions and the recent-searches store.

Suggestions are a pure function of (query, recent searches): recent
searches first (only while the query is empty), then the popular condition
terms that match, capped at MAX_SUGGESTIONS. No network calls.
"""

from __future__ import annotations

import json
from typing import Any, List, MutableMapping, Optional, Sequence, Tuple

from healui_search.config import (
    ENABLE_VERBOSE_LOGGING,
    MAX_RECENT_SEARCHES,
    MAX_SUGGESTIONS,
    RECENT_SEARCHES_KEY,
)
from healui_search.debounce import Debouncer
from healui_search.schemas import LocationSuggestion, Suggestion, SuggestionType

POPULAR_CONDITIONS: Tuple[str, ...] = (
    "Back Pain",
    "Knee Pain",
    "Sports Injury",
    "Post Surgery",
    "Neck Pain",
    "Stroke Recovery",
    "Arthritis",
    "Sciatica",
)


def generate_suggestions(
    query: str,
    recent: Sequence[str],
    conditions: Sequence[str] = POPULAR_CONDITIONS,
    limit: int = MAX_SUGGESTIONS,
) -> List[Suggestion]:
    """Build the suggestion list shown under the search box."""
    needle = (query or "").strip().lower()
    suggestions: List[Suggestion] = []

    if not needle:
        for text in recent:
            suggestions.append(Suggestion(id=f"recent-{text}", text=text, type=SuggestionType.RECENT))

    for condition in conditions:
        if not needle or needle in condition.lower():
            suggestions.append(
                Suggestion(id=f"condition-{condition}", text=condition, type=SuggestionType.CONDITION)
            )

    return suggestions[:limit]


class SuggestionEngine:
    """Memoizes ``generate_suggestions`` on its two inputs."""

    def __init__(self, conditions: Sequence[str] = POPULAR_CONDITIONS, limit: int = MAX_SUGGESTIONS) -> None:
        self.conditions = tuple(conditions)
        self.limit = limit
        self._key: Optional[Tuple[str, Tuple[str, ...]]] = None
        self._cached: List[Suggestion] = []
        self.refresh_count = 0

    def suggestions_for(self, query: str, recent: Sequence[str]) -> List[Suggestion]:
        key = (query or "", tuple(recent))
        if key != self._key:
            self._key = key
            self._cached = generate_suggestions(query, recent, self.conditions, self.limit)
            self.refresh_count += 1
        return list(self._cached)


def refresh_suggestions(
    engine: SuggestionEngine,
    debouncer: Debouncer[str],
    raw_query: str,
    recent: Sequence[str],
) -> List[Suggestion]:
    """
    One tick of the suggestion refresher: feed the current input, settle it
    if it has been stable for the debounce window, and return suggestions
    for the settled query.
    """
    debouncer.push(raw_query or "")
    debouncer.poll()
    return engine.suggestions_for(debouncer.settled, recent)


def location_suggestions(items: Sequence[LocationSuggestion], current: str = "") -> List[Suggestion]:
    """Backend location matches as LOCATION suggestions, minus an exact match of ``current``."""
    needle = (current or "").strip().lower()
    suggestions: List[Suggestion] = []
    for item in items:
        text = item.display_name or item.name
        if not text or text.lower() == needle:
            continue
        suggestions.append(Suggestion(id=f"location-{item.id}", text=text, type=SuggestionType.LOCATION))
    return suggestions


# --------------------------------------------------------------------
# Recent searches
# --------------------------------------------------------------------

class RecentSearches:
    """
    Bounded, deduplicated, most-recent-first list of submitted queries.

    Persisted as a JSON array under a single key of an injected key-value
    store (the SQLite LocalStore in the app, a plain dict in tests).
    """

    def __init__(
        self,
        store: MutableMapping[str, Any],
        key: str = RECENT_SEARCHES_KEY,
        max_entries: int = MAX_RECENT_SEARCHES,
    ) -> None:
        self.store = store
        self.key = key
        self.max_entries = max_entries

    def load(self) -> List[str]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except (TypeError, ValueError):
            if ENABLE_VERBOSE_LOGGING:
                print("[SEARCH] Failed to load recent searches, starting empty")
            return []
        if not isinstance(items, list):
            return []
        return [str(item) for item in items if isinstance(item, str) and item.strip()][: self.max_entries]

    def add(self, query: str) -> List[str]:
        """Prepend ``query``; repeated submissions of the same text are idempotent."""
        text = (query or "").strip()
        current = self.load()
        if not text:
            return current
        updated = [text] + [item for item in current if item != text]
        updated = updated[: self.max_entries]
        if updated != current:
            self.store[self.key] = json.dumps(updated)
        return updated
