"""
healui_search/filters.py

Filter Model: the canonical shape of a search request.

A filter is "active" only when at least one field differs from its
documented default. That single predicate drives URL serialization, the
"has active filters" UI state and the featured-vs-search decision.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from healui_search.config import DEFAULT_RADIUS_KM


class ServiceType(str, Enum):
    """How the consultation is delivered."""

    ALL = "ALL"
    HOME_VISIT = "HOME_VISIT"
    ONLINE = "ONLINE"


class Availability(str, Enum):
    """Availability window filter."""

    ALL = "ALL"
    TODAY = "TODAY"
    THIS_WEEK = "THIS_WEEK"
    SPECIFIC_DATE = "SPECIFIC_DATE"


class SortBy(str, Enum):
    """Result ordering requested from the backend."""

    RELEVANCE = "RELEVANCE"
    RATING = "RATING"
    PRICE = "PRICE"
    DISTANCE = "DISTANCE"


class SearchFilters(BaseModel):
    """One instance per active search. Immutable; derive changes with ``replace``."""

    model_config = ConfigDict(frozen=True)

    query: str = Field("", description="Free text; empty means browse mode")

    # Geographic scoping (mutually reinforcing, not exclusive)
    location: str = Field("", description="Free-form location / locality")
    pincode: str = Field("", description="Postal pincode")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    radius: int = Field(DEFAULT_RADIUS_KM, ge=1, description="Search radius in km")
    use_current_location: bool = False

    specialization: str = Field("", description="Category filter, empty = any")
    service_type: ServiceType = ServiceType.ALL
    availability: Availability = Availability.ALL
    specific_date: Optional[str] = Field(None, description="ISO date, used with SPECIFIC_DATE")
    min_rating: float = Field(0, ge=0, le=5)
    max_price: Optional[int] = Field(None, ge=0)
    sort_by: SortBy = SortBy.RELEVANCE

    @field_validator("query", "location", "pincode", "specialization", mode="before")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("max_price", mode="before")
    @classmethod
    def zero_price_is_unset(cls, v):
        if v == 0 or v == "":
            return None
        return v

    @field_validator("specific_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def replace(self, **changes: Any) -> "SearchFilters":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return SearchFilters.model_validate(data)


DEFAULT_FILTERS = SearchFilters()


def non_default_fields(filters: SearchFilters) -> Dict[str, Any]:
    """Return the subset of fields whose value differs from the default."""
    result: Dict[str, Any] = {}
    for name in SearchFilters.model_fields:
        value = getattr(filters, name)
        if value != getattr(DEFAULT_FILTERS, name):
            result[name] = value
    return result


def has_active_filters(filters: SearchFilters) -> bool:
    return bool(non_default_fields(filters))


def active_filter_count(filters: SearchFilters) -> int:
    """Number of non-default structured filters (the free-text query is not counted)."""
    return len([name for name in non_default_fields(filters) if name != "query"])
