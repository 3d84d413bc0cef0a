"""
healui_search/url_sync.py

Bidirectional mapping between SearchFilters and the page query string, so a
search is shareable, bookmarkable and back-button safe.

Only non-default fields are written, and ``page`` only when it is > 1.
Parsing is forgiving: absent or malformed parameters fall back to defaults.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, MutableMapping, NamedTuple, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit

from pydantic import ValidationError

from healui_search.config import ENABLE_VERBOSE_LOGGING
from healui_search.filters import (
    DEFAULT_FILTERS,
    Availability,
    SearchFilters,
    ServiceType,
    SortBy,
    non_default_fields,
)

# (field name, URL parameter) in serialization order
URL_PARAMS: List[Tuple[str, str]] = [
    ("query", "q"),
    ("location", "location"),
    ("specialization", "specialization"),
    ("service_type", "serviceType"),
    ("availability", "availability"),
    ("specific_date", "specificDate"),
    ("min_rating", "minRating"),
    ("max_price", "maxPrice"),
    ("sort_by", "sortBy"),
    ("lat", "lat"),
    ("lng", "lng"),
    ("radius", "radius"),
    ("pincode", "pincode"),
    ("use_current_location", "useCurrentLocation"),
]

PAGE_PARAM = "page"
SEARCH_PATH = "/search"


class URLState(NamedTuple):
    filters: SearchFilters
    page: int


# --------------------------------------------------------------------
# Value coercion
# --------------------------------------------------------------------

def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "value"):  # str Enum
        return str(value.value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def _parse_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_int(raw: Optional[str]) -> Optional[int]:
    value = _parse_float(raw)
    return int(value) if value is not None else None


def _parse_enum(enum_cls, raw: Optional[str]):
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        return None


def _normalize_source(source: Union[str, Mapping[str, Any], None]) -> Dict[str, str]:
    """Accept a raw query string, a full URL or a mapping (e.g. st.query_params)."""
    if source is None:
        return {}
    if isinstance(source, str):
        text = source
        if "?" in text:
            text = urlsplit(text).query
        params: Dict[str, str] = {}
        for key, value in parse_qsl(text, keep_blank_values=True):
            params.setdefault(key, value)
        return params

    params = {}
    for key, value in source.items():
        if isinstance(value, (list, tuple)):
            value = value[0] if value else ""
        params[key] = "" if value is None else str(value)
    return params


# --------------------------------------------------------------------
# Parse / serialize
# --------------------------------------------------------------------

def parse_from_url(source: Union[str, Mapping[str, Any], None]) -> URLState:
    """Build SearchFilters and page number from URL parameters."""
    params = _normalize_source(source)

    candidates: Dict[str, Any] = {
        "query": params.get("q") or params.get("query") or "",
        "location": params.get("location", ""),
        "specialization": params.get("specialization", ""),
        "service_type": _parse_enum(ServiceType, params.get("serviceType")),
        "availability": _parse_enum(Availability, params.get("availability")),
        "specific_date": params.get("specificDate") or None,
        "min_rating": _parse_float(params.get("minRating")),
        "max_price": _parse_int(params.get("maxPrice")),
        "sort_by": _parse_enum(SortBy, params.get("sortBy")),
        "lat": _parse_float(params.get("lat")),
        "lng": _parse_float(params.get("lng")),
        "radius": _parse_int(params.get("radius")),
        "pincode": params.get("pincode", ""),
        "use_current_location": params.get("useCurrentLocation") == "true",
    }
    # None means "use the default" for fields whose default is not None
    data = {
        name: value
        for name, value in candidates.items()
        if value is not None or getattr(DEFAULT_FILTERS, name) is None
    }

    filters = _validate_dropping_invalid(data)

    page = _parse_int(params.get(PAGE_PARAM)) or 1
    return URLState(filters=filters, page=max(1, page))


def _validate_dropping_invalid(data: Dict[str, Any]) -> SearchFilters:
    """Validate, discarding out-of-range fields one round at a time."""
    while True:
        try:
            return SearchFilters.model_validate(data)
        except ValidationError as e:
            bad = {err["loc"][0] for err in e.errors() if err.get("loc")}
            if not bad or not bad & set(data):
                return SearchFilters()
            if ENABLE_VERBOSE_LOGGING:
                print(f"[URL] Ignoring invalid parameters: {sorted(bad)}")
            data = {k: v for k, v in data.items() if k not in bad}


def to_query_params(filters: SearchFilters, page: int = 1) -> Dict[str, str]:
    """Mapping form of the canonical URL (non-default fields only)."""
    changed = non_default_fields(filters)
    params: Dict[str, str] = {}
    for field_name, param in URL_PARAMS:
        if field_name in changed:
            params[param] = _format_value(changed[field_name])
    if page and page > 1:
        params[PAGE_PARAM] = str(int(page))
    return params


def serialize_to_url(filters: SearchFilters, page: int = 1) -> str:
    """Return the canonical query string (without leading '?'), '' for a default search."""
    return urlencode(to_query_params(filters, page))


def build_url(filters: SearchFilters, page: int = 1, path: str = SEARCH_PATH) -> str:
    query = serialize_to_url(filters, page)
    return f"{path}?{query}" if query else path


# --------------------------------------------------------------------
# Location writer
# --------------------------------------------------------------------

class URLSynchronizer:
    """
    Keeps a query-param mapping in sync with the active search.

    ``query_params`` is any mutable mapping; in the app it is
    ``st.query_params``, which updates the browser URL in place (history
    replacement, no navigation or rerun).
    """

    def __init__(self, query_params: MutableMapping[str, Any], path: str = SEARCH_PATH) -> None:
        self.query_params = query_params
        self.path = path

    def read(self) -> URLState:
        return parse_from_url(self.query_params)

    def write(self, filters: SearchFilters, page: int = 1) -> str:
        params = to_query_params(filters, page)
        current = _normalize_source(self.query_params)
        if current != params:
            self.query_params.clear()
            self.query_params.update(params)
        return build_url(filters, page, self.path)
