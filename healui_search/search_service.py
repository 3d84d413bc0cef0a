"""
healui_search/search_service.py

HTTP search collaborator for the marketplace backend.

Features:
- Filter -> API parameter conversion (sorting, availability dates, geo scope)
- Bounded LRU cache with TTL for search pages and featured listings
- Friendly error messages for timeouts, rate limits and server failures
- Running performance metrics (cache hit rate, error rate, response time)
"""

from __future__ import annotations

import hashlib
import json
import time
from collections import OrderedDict
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests
from pydantic import ValidationError

from healui_search.api_client import api_request
from healui_search.config import (
    CACHE_TTL_SECONDS,
    ENABLE_VERBOSE_LOGGING,
    FEATURED_LIMIT,
    MAX_CACHE_SIZE,
    MIN_LOCATION_QUERY,
    SEARCH_PAGE_LIMIT,
    SEARCH_TIMEOUT_SECONDS,
)
from healui_search.errors import (
    FEATURED_ERROR,
    GENERIC_SEARCH_ERROR,
    CollaboratorError,
    ConnectivityError,
    SearchError,
    SearchTimeoutError,
)
from healui_search.filters import Availability, SearchFilters, ServiceType, SortBy
from healui_search.network import NetworkMonitor
from healui_search.schemas import LocationSuggestion, Pagination, Provider, SearchResponse

SEARCH_PATH = "marketplace/physiotherapists/search"
FEATURED_PATH = "marketplace/physiotherapists/featured"
SPECIALIZATIONS_PATH = "marketplace/physiotherapists/meta/specializations"
LOCATIONS_PATH = "marketplace/physiotherapists/meta/locations"

SPECIALIZATIONS_TTL_SECONDS = 60 * 60

FALLBACK_SPECIALIZATIONS: Tuple[str, ...] = (
    "Sports Rehabilitation",
    "Orthopedic",
    "Neurological",
    "Pediatric",
    "Geriatric",
    "Cardiopulmonary",
    "Women's Health",
    "Manual Therapy",
)

# SortBy -> (sort_by, sort_order); RELEVANCE leaves ordering to the backend
SORT_PARAMS: Dict[SortBy, Optional[Tuple[str, str]]] = {
    SortBy.RELEVANCE: None,
    SortBy.RATING: ("rating", "desc"),
    SortBy.PRICE: ("price", "asc"),
    SortBy.DISTANCE: ("distance", "asc"),
}


def to_api_params(
    filters: SearchFilters,
    page: int = 1,
    limit: int = SEARCH_PAGE_LIMIT,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Convert SearchFilters into backend query parameters."""
    today = today or date.today()
    params: Dict[str, Any] = {"page": page, "limit": limit}

    if filters.query:
        params["query"] = filters.query
    if filters.location:
        params["location"] = filters.location
    if filters.specialization:
        params["specialization"] = filters.specialization
    if filters.service_type != ServiceType.ALL:
        params["service_type"] = filters.service_type.value

    if filters.availability == Availability.TODAY:
        params["available_date"] = today.isoformat()
    elif filters.availability == Availability.THIS_WEEK:
        params["available_date"] = today.isoformat()
        params["available_until"] = (today + timedelta(days=6)).isoformat()
    elif filters.availability == Availability.SPECIFIC_DATE and filters.specific_date:
        params["available_date"] = filters.specific_date

    if filters.min_rating > 0:
        params["min_rating"] = filters.min_rating
    if filters.max_price:
        params["max_price"] = filters.max_price

    sort = SORT_PARAMS[filters.sort_by]
    if sort is not None:
        params["sort_by"], params["sort_order"] = sort

    if filters.lat is not None and filters.lng is not None:
        params["lat"] = filters.lat
        params["lng"] = filters.lng
        params["radius"] = filters.radius
    if filters.pincode:
        params["pincode"] = filters.pincode

    return params


def generate_search_id(filters: SearchFilters, limit: int) -> str:
    """Stable short id for a filter set (page excluded: all pages share one search)."""
    payload = json.dumps({"filters": filters.model_dump(mode="json"), "limit": limit}, sort_keys=True)
    return hashlib.sha256(payload.encode()).hexdigest()[:16]


def map_search_error(error: Exception) -> SearchError:
    """Translate a collaborator failure into a user-facing SearchError."""
    if isinstance(error, SearchTimeoutError):
        return SearchTimeoutError("Search is taking longer than expected. Please try again.")
    if isinstance(error, ConnectivityError):
        return error
    if isinstance(error, CollaboratorError):
        if error.status == 429:
            return CollaboratorError("Too many search requests. Please wait a moment and try again.", status=429)
        if error.status is not None and error.status >= 500:
            return CollaboratorError(
                "Server error. Our team has been notified. Please try again later.", status=error.status
            )
        return error
    return CollaboratorError(GENERIC_SEARCH_ERROR)


def _unwrap_envelope(resp: requests.Response) -> Dict[str, Any]:
    """Return the JSON envelope of a 2xx response, raising CollaboratorError otherwise."""
    if resp.status_code >= 400:
        message = GENERIC_SEARCH_ERROR
        try:
            body = resp.json()
            if isinstance(body, dict) and body.get("message"):
                message = str(body["message"])
        except ValueError:
            pass
        raise CollaboratorError(message, status=resp.status_code)

    try:
        body = resp.json()
    except ValueError:
        raise CollaboratorError(GENERIC_SEARCH_ERROR, status=resp.status_code)

    if not isinstance(body, dict) or not body.get("success") or body.get("data") is None:
        message = body.get("message") if isinstance(body, dict) else None
        raise CollaboratorError(message or "Search request failed", status=resp.status_code)
    return body


def _parse_providers(items: Sequence[Any]) -> List[Provider]:
    providers: List[Provider] = []
    for item in items:
        try:
            providers.append(Provider.model_validate(item))
        except ValidationError:
            if ENABLE_VERBOSE_LOGGING:
                print("[SEARCH] Skipping malformed provider row")
    return providers


class SearchService:
    """Marketplace search collaborator with caching and metrics."""

    def __init__(
        self,
        monitor: Optional[NetworkMonitor] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        cache_ttl: int = CACHE_TTL_SECONDS,
        max_cache_size: int = MAX_CACHE_SIZE,
        timeout: int = SEARCH_TIMEOUT_SECONDS,
    ) -> None:
        self.monitor = monitor
        self.session = session
        self.clock = clock
        self.cache_ttl = cache_ttl
        self.max_cache_size = max_cache_size
        self.timeout = timeout
        self._cache: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self.analytics = {
            "search_count": 0,
            "cache_hits": 0,
            "cache_misses": 0,
            "average_response_time": 0.0,
            "error_count": 0,
            "last_search_time": 0.0,
        }

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, filters: SearchFilters, page: int = 1, limit: int = SEARCH_PAGE_LIMIT) -> SearchResponse:
        started = self.clock()
        search_id = generate_search_id(filters, limit)
        cache_key = f"search:{search_id}:{page}"

        self.analytics["search_count"] += 1
        self.analytics["last_search_time"] = started

        cached = self._cache_get(cache_key)
        if cached is not None:
            self.analytics["cache_hits"] += 1
            self._log("CACHE_HIT", filters, 0.0)
            return cached
        self.analytics["cache_misses"] += 1

        try:
            resp = self._get(SEARCH_PATH, to_api_params(filters, page, limit))
            body = _unwrap_envelope(resp)
        except SearchError as e:
            self.analytics["error_count"] += 1
            self._log("ERROR", filters, (self.clock() - started) * 1000.0, error=e)
            raise map_search_error(e)

        results = _parse_providers(body["data"])
        raw_pagination = body.get("pagination")
        if isinstance(raw_pagination, dict):
            pagination = Pagination.model_validate(raw_pagination)
        else:
            pagination = Pagination.single_page(len(results), limit).model_copy(update={"page": page})

        execution_time = (self.clock() - started) * 1000.0
        response = SearchResponse(
            results=results,
            pagination=pagination,
            search_id=str(body.get("searchId") or search_id),
            execution_time=execution_time,
            applied_filters=filters,
        )
        self._cache_put(cache_key, response)
        self._update_response_time(execution_time)
        self._log("SUCCESS", filters, execution_time)
        return response

    def get_featured(self, category: Optional[str] = None, limit: int = FEATURED_LIMIT) -> List[Provider]:
        """Featured providers for the landing state. Raises SearchError on failure."""
        cache_key = f"featured:{category or 'all'}:{limit}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            resp = self._get(FEATURED_PATH, {"location": category or None, "limit": limit})
            body = _unwrap_envelope(resp)
        except SearchError as e:
            if ENABLE_VERBOSE_LOGGING:
                print(f"[SEARCH] Featured providers error: {e.message}")
            if isinstance(e, ConnectivityError):
                raise
            raise CollaboratorError(FEATURED_ERROR, status=getattr(e, "status", None))

        providers = _parse_providers(body["data"])
        self._cache_put(cache_key, tuple(providers))
        return providers

    # ------------------------------------------------------------------
    # Metadata lookups (degrade silently)
    # ------------------------------------------------------------------

    def get_specializations(self) -> List[str]:
        cache_key = "specializations"
        cached = self._cache_get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            body = _unwrap_envelope(self._get(SPECIALIZATIONS_PATH, None))
        except SearchError as e:
            if ENABLE_VERBOSE_LOGGING:
                print(f"[SEARCH] Specializations error: {e.message}")
            return list(FALLBACK_SPECIALIZATIONS)

        names = [str(item) for item in body["data"] if item]
        if not names:
            return list(FALLBACK_SPECIALIZATIONS)
        self._cache_put(cache_key, tuple(names), ttl=SPECIALIZATIONS_TTL_SECONDS)
        return names

    def get_location_suggestions(self, query: str, limit: int = 5) -> List[LocationSuggestion]:
        """Location autocomplete. Failures degrade to an empty list."""
        text = (query or "").strip()
        if len(text) < MIN_LOCATION_QUERY:
            return []
        cache_key = f"locations:{text.lower()}:{limit}"
        cached = self._cache_get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            body = _unwrap_envelope(self._get(LOCATIONS_PATH, {"query": text, "limit": limit}))
        except SearchError as e:
            if ENABLE_VERBOSE_LOGGING:
                print(f"[SEARCH] Location suggestions error: {e.message}")
            return []

        suggestions = []
        for item in body["data"]:
            try:
                suggestions.append(LocationSuggestion.model_validate(item))
            except ValidationError:
                continue
        self._cache_put(cache_key, tuple(suggestions))
        return suggestions

    # ------------------------------------------------------------------
    # Metrics + cache utilities
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Cheap reachability ping; any HTTP answer counts as reachable."""
        if self.monitor is not None:
            self.monitor.record_ping()
        try:
            self._get(SPECIALIZATIONS_PATH, None)
        except SearchError:
            return False
        return True

    def get_performance_metrics(self) -> Dict[str, Any]:
        hits = self.analytics["cache_hits"]
        lookups = hits + self.analytics["cache_misses"]
        searches = self.analytics["search_count"]
        return {
            **self.analytics,
            "cache_size": len(self._cache),
            "cache_hit_rate": hits / lookups if lookups else 0.0,
            "error_rate": self.analytics["error_count"] / searches if searches else 0.0,
        }

    def clear_cache(self) -> None:
        self._cache.clear()

    def warm_cache(self, popular_searches: Sequence[SearchFilters]) -> int:
        """Pre-load page 1 of each filter set. Returns how many succeeded."""
        warmed = 0
        for filters in popular_searches:
            try:
                self.search(filters)
                warmed += 1
            except SearchError as e:
                if ENABLE_VERBOSE_LOGGING:
                    print(f"[SEARCH] Cache warming failed for {filters.query!r}: {e.message}")
        return warmed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, path: str, params: Optional[Dict[str, Any]]) -> requests.Response:
        return api_request(
            "GET", path, params=params, timeout=self.timeout, monitor=self.monitor, session=self.session
        )

    def _cache_get(self, key: str) -> Any:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < self.clock():
            del self._cache[key]
            return None
        self._cache.move_to_end(key)
        return value

    def _cache_put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if key in self._cache:
            del self._cache[key]
        while len(self._cache) >= self.max_cache_size:
            self._cache.popitem(last=False)
        self._cache[key] = (self.clock() + (ttl if ttl is not None else self.cache_ttl), value)

    def _update_response_time(self, execution_time: float) -> None:
        # Exponential moving average
        current = self.analytics["average_response_time"]
        if current == 0:
            self.analytics["average_response_time"] = execution_time
        else:
            self.analytics["average_response_time"] = current * 0.9 + execution_time * 0.1

    def _log(self, kind: str, filters: SearchFilters, execution_time: float, error: Optional[Exception] = None) -> None:
        if not ENABLE_VERBOSE_LOGGING:
            return
        suffix = f" | error={error}" if error is not None else ""
        print(
            f"[SEARCH] {kind} | has_query={bool(filters.query)} | "
            f"service_type={filters.service_type.value} | sort_by={filters.sort_by.value} | "
            f"{execution_time:.0f}ms{suffix}"
        )
