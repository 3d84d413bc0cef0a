"""
healui_search/schemas.py

Pydantic schemas for search results and suggestions.
Responses are immutable: each execution replaces the previous one wholesale.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from healui_search.filters import DEFAULT_FILTERS, SearchFilters


# ========================================================================
# PROVIDER SCHEMAS
# ========================================================================

class AvailabilityStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"
    OFFLINE = "OFFLINE"


class Provider(BaseModel):
    """A service professional returned by the marketplace backend.

    Only display fields are modeled; anything else the backend sends is dropped.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Provider identifier")
    full_name: str = Field(..., description="Display name")
    specializations: List[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = None
    average_rating: float = 0.0
    total_reviews: int = 0
    practice_address: Optional[str] = None
    consultation_fee: Optional[str] = None
    home_visit_fee: Optional[str] = None
    profile_photo_url: Optional[str] = None
    bio: Optional[str] = None
    availability_status: Optional[AvailabilityStatus] = None
    is_verified: bool = False
    home_visit_available: bool = False
    online_consultation_available: bool = False
    gender: Optional[str] = None


# ========================================================================
# SEARCH RESPONSE SCHEMAS
# ========================================================================

class Pagination(BaseModel):
    """Page metadata. Accepts the backend's camelCase keys."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    total: int = Field(0, ge=0)
    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1)
    total_pages: int = Field(1, ge=0, alias="totalPages")
    has_next: bool = Field(False, alias="hasNext")
    has_prev: bool = Field(False, alias="hasPrev")

    @classmethod
    def single_page(cls, count: int, limit: int) -> "Pagination":
        return cls(total=count, page=1, limit=limit, total_pages=1, has_next=False, has_prev=False)


class SearchResponse(BaseModel):
    """One completed execution. Never mutated in place."""
    model_config = ConfigDict(frozen=True)

    results: List[Provider] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
    search_id: str = Field(..., description="Opaque id from the backend or cache key")
    execution_time: float = Field(0.0, description="Round trip in milliseconds")
    applied_filters: SearchFilters = Field(default_factory=lambda: DEFAULT_FILTERS)


# ========================================================================
# SUGGESTION SCHEMAS
# ========================================================================

class SuggestionType(str, Enum):
    RECENT = "RECENT"
    POPULAR = "POPULAR"
    CONDITION = "CONDITION"
    LOCATION = "LOCATION"


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    type: SuggestionType


class LocationSuggestion(BaseModel):
    """Location autocomplete entry from the backend meta endpoint."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    type: str = ""
    display_name: str = ""
