# healui_search/test_url_sync.py
# Unit tests for the filter model and URL synchronization

import pytest
import sys
from pathlib import Path

from pydantic import ValidationError

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from healui_search.filters import (
    DEFAULT_FILTERS,
    Availability,
    SearchFilters,
    ServiceType,
    SortBy,
    active_filter_count,
    has_active_filters,
    non_default_fields,
)
from healui_search.url_sync import (
    URLState,
    URLSynchronizer,
    build_url,
    parse_from_url,
    serialize_to_url,
    to_query_params,
)


class TestFilterModel:
    def test_defaults_are_inactive(self):
        assert not has_active_filters(SearchFilters())
        assert non_default_fields(DEFAULT_FILTERS) == {}

    def test_whitespace_query_is_inactive(self):
        """Text fields are stripped, so blanks count as defaults."""
        filters = SearchFilters(query="   ", location=" ")
        assert filters.query == ""
        assert not has_active_filters(filters)

    def test_explicit_default_radius_is_inactive(self):
        assert not has_active_filters(SearchFilters(radius=15))

    def test_active_filter_count_ignores_query(self):
        filters = SearchFilters(query="back pain", location="Pune", min_rating=4)
        assert has_active_filters(filters)
        assert active_filter_count(filters) == 2

    def test_replace_revalidates(self):
        filters = SearchFilters(query="neck pain")
        assert filters.replace(sort_by=SortBy.RATING).sort_by == SortBy.RATING
        with pytest.raises(ValidationError):
            filters.replace(min_rating=7)

    def test_blank_specific_date_is_none(self):
        assert SearchFilters(specific_date="").specific_date is None

    def test_zero_max_price_means_no_ceiling(self):
        assert SearchFilters(max_price=0).max_price is None
        assert SearchFilters(max_price="").max_price is None
        assert SearchFilters(max_price=1500).max_price == 1500


class TestSerialize:
    def test_default_search_serializes_empty(self):
        assert serialize_to_url(SearchFilters()) == ""
        assert build_url(SearchFilters()) == "/search"

    def test_query_uses_q_and_is_encoded(self):
        assert serialize_to_url(SearchFilters(query="knee pain")) == "q=knee+pain"

    def test_page_only_when_above_one(self):
        filters = SearchFilters(query="knee pain")
        assert serialize_to_url(filters, page=1) == "q=knee+pain"
        assert serialize_to_url(filters, page=3) == "q=knee+pain&page=3"

    def test_only_non_default_fields_written(self):
        filters = SearchFilters(
            query="sciatica",
            location="Mumbai",
            service_type=ServiceType.HOME_VISIT,
            min_rating=4.5,
        )
        params = to_query_params(filters)
        assert params == {
            "q": "sciatica",
            "location": "Mumbai",
            "serviceType": "HOME_VISIT",
            "minRating": "4.5",
        }

    def test_whole_number_floats_written_without_decimals(self):
        assert to_query_params(SearchFilters(min_rating=4))["minRating"] == "4"

    def test_boolean_written_as_true(self):
        assert to_query_params(SearchFilters(use_current_location=True)) == {"useCurrentLocation": "true"}

    def test_build_url_with_path(self):
        assert build_url(SearchFilters(query="knee pain"), 2) == "/search?q=knee+pain&page=2"

    def test_zero_max_price_not_written(self):
        filters = SearchFilters(query="back", max_price=0)
        assert serialize_to_url(filters) == "q=back"
        assert "maxPrice" not in to_query_params(filters)
        assert not has_active_filters(SearchFilters(max_price=0))


class TestParse:
    def test_round_trip(self):
        filters = SearchFilters(
            query="post surgery",
            location="Bandra",
            specialization="Orthopedic",
            service_type=ServiceType.ONLINE,
            availability=Availability.SPECIFIC_DATE,
            specific_date="2024-06-01",
            min_rating=4.5,
            max_price=1500,
            sort_by=SortBy.DISTANCE,
            lat=19.07,
            lng=72.87,
            radius=25,
            pincode="400050",
            use_current_location=True,
        )
        assert parse_from_url(build_url(filters, 2)) == URLState(filters=filters, page=2)

    def test_empty_source_is_default(self):
        assert parse_from_url(None) == URLState(filters=DEFAULT_FILTERS, page=1)
        assert parse_from_url("") == URLState(filters=DEFAULT_FILTERS, page=1)

    def test_accepts_full_url(self):
        state = parse_from_url("https://healui.com/search?q=knee+pain&page=2")
        assert state.filters.query == "knee pain"
        assert state.page == 2

    def test_accepts_mapping_with_list_values(self):
        state = parse_from_url({"q": ["neck pain"], "page": ["3"]})
        assert state.filters.query == "neck pain"
        assert state.page == 3

    def test_query_param_alias(self):
        assert parse_from_url("query=arthritis").filters.query == "arthritis"

    def test_malformed_values_fall_back_to_defaults(self):
        state = parse_from_url("q=back&minRating=abc&serviceType=BOGUS&maxPrice=&page=-2")
        assert state.filters == SearchFilters(query="back")
        assert state.page == 1

    def test_zero_max_price_parses_as_unset(self):
        assert parse_from_url("maxPrice=0").filters == SearchFilters()

    def test_out_of_range_values_dropped_individually(self):
        state =parse_from_url("q=back&minRating=9&location=Delhi&lat=200")
        assert state.filters.min_rating == 0
        assert state.filters.lat is None
        assert state.filters.query == "back"
        assert state.filters.location == "Delhi"


class CountingParams(dict):
    """dict that records how many times it was rewritten."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = 0

    def clear(self):
        self.writes += 1
        super().clear()


class TestURLSynchronizer:
    def test_write_replaces_params(self):
        params = CountingParams({"stale": "1"})
        sync = URLSynchronizer(params)
        url = sync.write(SearchFilters(query="back pain"), 2)
        assert url == "/search?q=back+pain&page=2"
        assert dict(params) == {"q": "back pain", "page": "2"}

    def test_write_default_clears_params(self):
        params = CountingParams({"q": "old"})
        assert URLSynchronizer(params).write(SearchFilters()) == "/search"
        assert dict(params) == {}

    def test_unchanged_state_is_not_rewritten(self):
        params = CountingParams()
        sync = URLSynchronizer(params)
        sync.write(SearchFilters(query="knee pain"))
        sync.write(SearchFilters(query="knee pain"))
        assert params.writes == 1

    def test_read(self):
        sync = URLSynchronizer({"q": "sports injury", "sortBy": "RATING"})
        state = sync.read()
        assert state.filters.query == "sports injury"
        assert state.filters.sort_by == SortBy.RATING
