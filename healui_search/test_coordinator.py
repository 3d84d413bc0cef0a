# healui_search/test_coordinator.py
# Unit tests for the search execution coordinator (state machine, races, offline gating)

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from healui_search.analytics import RESULT_SELECTED, SEARCH_SUBMITTED, TIMING_COMPLETE, AnalyticsTracker
from healui_search.coordinator import (
    FEATURED_SEARCH_ID,
    RequestKind,
    SearchCoordinator,
    SearchStatus,
)
from healui_search.errors import (
    FEATURED_ERROR,
    GENERIC_SEARCH_ERROR,
    OFFLINE_MESSAGE,
    CollaboratorError,
)
from healui_search.filters import SearchFilters
from healui_search.network import NetworkMonitor
from healui_search.schemas import Pagination, Provider, SearchResponse
from healui_search.suggestions import RecentSearches
from healui_search.url_sync import URLSynchronizer


def make_provider(provider_id):
    return Provider(id=provider_id, full_name=f"Physio {provider_id}")


def make_response(filters, page=1, total_pages=1, ids=("p1",)):
    return SearchResponse(
        results=[make_provider(i) for i in ids],
        pagination=Pagination(
            total=len(ids) * total_pages,
            page=page,
            limit=12,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
        search_id=f"search-{filters.query}-{page}",
        execution_time=5.0,
        applied_filters=filters,
    )


class FakeCollaborator:
    """Records calls; ``outcomes`` entries are responses or exceptions, consumed in order."""

    def __init__(self, outcomes=None, total_pages=1):
        self.outcomes = list(outcomes or [])
        self.total_pages = total_pages
        self.calls = []
        self.featured_calls = []
        self.featured_outcome = None

    def search(self, filters, page=1, limit=12):
        self.calls.append((filters, page, limit))
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return make_response(filters, page, self.total_pages)

    def get_featured(self, category=None, limit=12):
        self.featured_calls.append((category, limit))
        if isinstance(self.featured_outcome, Exception):
            raise self.featured_outcome
        return [make_provider("f1"), make_provider("f2")]

    def get_performance_metrics(self):
        return {"cache_hit_rate": 0.0}


@pytest.fixture
def harness():
    collaborator = FakeCollaborator()
    monitor = NetworkMonitor()
    url_params = {}
    store = {}
    events = []
    coordinator = SearchCoordinator(
        collaborator=collaborator,
        monitor=monitor,
        url_sync=URLSynchronizer(url_params),
        recent=RecentSearches(store),
        analytics=AnalyticsTracker([lambda name, details: events.append((name, details))]),
    )
    states = []
    coordinator.subscribe(states.append)
    return {
        "coordinator": coordinator,
        "collaborator": collaborator,
        "monitor": monitor,
        "url": url_params,
        "recent": RecentSearches(store),
        "events": events,
        "states": states,
    }


def named(events, name):
    return [details for event_name, details in events if event_name == name]


class TestSubmit:
    def test_idle_loading_success(self, harness):
        coordinator = harness["coordinator"]
        assert coordinator.status == SearchStatus.IDLE

        filters = SearchFilters(query="knee pain", location="Pune")
        assert coordinator.submit(filters) == SearchStatus.SUCCESS

        assert [s.status for s in harness["states"]] == [SearchStatus.LOADING, SearchStatus.SUCCESS]
        assert coordinator.response.applied_filters == filters
        assert coordinator.error is None
        assert not coordinator.loading
        assert harness["collaborator"].calls == [(filters, 1, 12)]
        assert harness["url"] == {"q": "knee pain", "location": "Pune"}
        assert harness["recent"].load() == ["knee pain"]
        assert named(harness["events"], SEARCH_SUBMITTED) == [{"query": "knee pain", "active_filter_count": 1}]
        assert named(harness["events"], TIMING_COMPLETE)[0]["name"] == "search_execution"

    def test_default_filters_load_featured(self, harness):
        coordinator = harness["coordinator"]
        assert coordinator.submit(SearchFilters(query="  ")) == SearchStatus.SUCCESS

        assert harness["collaborator"].calls == []
        assert harness["collaborator"].featured_calls == [(None, 12)]
        assert coordinator.response.search_id == FEATURED_SEARCH_ID
        assert [p.id for p in coordinator.response.results] == ["f1", "f2"]
        assert coordinator.response.pagination.total_pages == 1
        assert harness["url"] == {}
        assert named(harness["events"], SEARCH_SUBMITTED) == []
        assert harness["recent"].load() == []

    def test_structured_filter_without_query_searches(self, harness):
        harness["coordinator"].submit(SearchFilters(location="Pune"))
        assert len(harness["collaborator"].calls) == 1
        assert harness["recent"].load() == []

    def test_load_featured(self, harness):
        harness["coordinator"].load_featured()
        assert harness["collaborator"].featured_calls == [(None, 12)]


class TestFailures:
    def test_collaborator_message_shown(self, harness):
        harness["collaborator"].outcomes = [CollaboratorError("Too many search requests. Please wait a moment and try again.")]
        coordinator = harness["coordinator"]

        assert coordinator.submit(SearchFilters(query="back pain")) == SearchStatus.ERROR
        assert coordinator.error == "Too many search requests. Please wait a moment and try again."
        assert [s.status for s in harness["states"]] == [SearchStatus.LOADING, SearchStatus.ERROR]
        assert harness["recent"].load() == []

    def test_unexpected_exception_gets_generic_message(self, harness):
        harness["collaborator"].outcomes = [RuntimeError("KeyError deep in parser")]
        coordinator = harness["coordinator"]
        coordinator.submit(SearchFilters(query="back pain"))
        assert coordinator.error == GENERIC_SEARCH_ERROR

    def test_featured_failure_message(self, harness):
        harness["collaborator"].featured_outcome = RuntimeError("boom")
        coordinator = harness["coordinator"]
        assert coordinator.load_featured() == SearchStatus.ERROR
        assert coordinator.error == FEATURED_ERROR

    def test_previous_results_kept_on_error(self, harness):
        coordinator = harness["coordinator"]
        coordinator.submit(SearchFilters(query="knee pain"))
        previous = coordinator.response

        harness["collaborator"].outcomes = [CollaboratorError()]
        coordinator.submit(SearchFilters(query="neck pain"))
        assert coordinator.status == SearchStatus.ERROR
        assert coordinator.response == previous

    def test_results_cleared_on_error_when_configured(self):
        collaborator = FakeCollaborator()
        coordinator = SearchCoordinator(collaborator, NetworkMonitor(), keep_results_on_error=False)
        coordinator.submit(SearchFilters(query="knee pain"))
        collaborator.outcomes = [CollaboratorError()]
        coordinator.submit(SearchFilters(query="neck pain"))
        assert coordinator.response is None

    def test_retry_reissues_last_request(self, harness):
        collaborator = harness["collaborator"]
        collaborator.outcomes = [CollaboratorError()]
        coordinator = harness["coordinator"]
        filters = SearchFilters(query="sciatica")

        coordinator.submit(filters, 2)
        assert coordinator.status == SearchStatus.ERROR
        assert coordinator.retry() == SearchStatus.SUCCESS
        assert collaborator.calls == [(filters, 2, 12), (filters, 2, 12)]
        assert coordinator.error is None

    def test_retry_without_history_loads_featured(self, harness):
        assert harness["coordinator"].retry() == SearchStatus.SUCCESS
        assert harness["collaborator"].featured_calls == [(None, 12)]


class TestOffline:
    def test_offline_blocks_dispatch(self, harness):
        harness["monitor"].set_offline()
        coordinator = harness["coordinator"]

        assert coordinator.submit(SearchFilters(query="knee pain")) == SearchStatus.ERROR
        assert coordinator.error == OFFLINE_MESSAGE
        assert harness["collaborator"].calls == []
        assert [s.status for s in harness["states"]] == [SearchStatus.ERROR]

    def test_offline_blocks_featured(self, harness):
        harness["monitor"].set_offline()
        harness["coordinator"].load_featured()
        assert harness["collaborator"].featured_calls == []

    def test_no_auto_retry_on_reconnect(self, harness):
        harness["monitor"].set_offline()
        harness["coordinator"].submit(SearchFilters(query="knee pain"))
        harness["monitor"].set_online()
        assert harness["collaborator"].calls == []
        assert harness["coordinator"].retry() == SearchStatus.SUCCESS
        assert len(harness["collaborator"].calls) == 1


class TestPaging:
    def test_change_page_reuses_applied_filters(self, harness):
        harness["collaborator"].total_pages = 3
        coordinator = harness["coordinator"]
        filters = SearchFilters(query="knee pain")
        coordinator.submit(filters)

        assert coordinator.change_page(2) == SearchStatus.SUCCESS
        assert harness["collaborator"].calls[-1] == (filters, 2, 12)
        assert harness["url"] == {"q": "knee pain", "page": "2"}
        assert len(named(harness["events"], SEARCH_SUBMITTED)) == 1

    def test_change_page_clamped(self, harness):
        harness["collaborator"].total_pages = 3
        coordinator = harness["coordinator"]
        coordinator.submit(SearchFilters(query="knee pain"))
        coordinator.change_page(10)
        assert harness["collaborator"].calls[-1][1] == 3
        coordinator.change_page(0)
        assert harness["collaborator"].calls[-1][1] == 1

    def test_change_page_without_search_is_noop(self, harness):
        coordinator = harness["coordinator"]
        assert coordinator.change_page(2) == SearchStatus.IDLE
        coordinator.load_featured()
        coordinator.change_page(2)
        assert harness["collaborator"].calls == []


class TestSequencing:
    def test_slow_first_response_is_discarded(self, harness):
        coordinator = harness["coordinator"]
        first_filters = SearchFilters(query="knee")
        second_filters = SearchFilters(query="knee pain")
        first = coordinator.begin(first_filters)
        second = coordinator.begin(second_filters)
        assert first.kind == RequestKind.SEARCH

        assert coordinator.complete(second, make_response(second_filters))
        assert coordinator.status == SearchStatus.SUCCESS

        assert not coordinator.complete(first, make_response(first_filters))
        assert coordinator.response.applied_filters == second_filters
        assert harness["url"] == {"q": "knee pain"}

    def test_older_response_shown_while_newer_loading(self, harness):
        coordinator = harness["coordinator"]
        first_filters = SearchFilters(query="knee")
        second_filters = SearchFilters(query="knee pain")
        first = coordinator.begin(first_filters)
        second = coordinator.begin(second_filters)

        assert coordinator.complete(first, make_response(first_filters))
        assert coordinator.status == SearchStatus.LOADING
        assert coordinator.state.loading_seq == second.seq

        assert coordinator.complete(second, make_response(second_filters))
        assert coordinator.status == SearchStatus.SUCCESS
        assert coordinator.response.applied_filters == second_filters

    def test_superseded_failure_ignored(self, harness):
        coordinator = harness["coordinator"]
        first = coordinator.begin(SearchFilters(query="a"))
        second = coordinator.begin(SearchFilters(query="b"))

        assert not coordinator.fail(first, CollaboratorError("late failure"))
        assert coordinator.status == SearchStatus.LOADING
        assert coordinator.complete(second, make_response(SearchFilters(query="b")))
        assert coordinator.error is None

    def test_failure_after_newer_success_ignored(self, harness):
        coordinator = harness["coordinator"]
        first = coordinator.begin(SearchFilters(query="a"))
        second = coordinator.begin(SearchFilters(query="b"))
        coordinator.complete(second, make_response(SearchFilters(query="b")))
        assert not coordinator.fail(first, CollaboratorError())
        assert coordinator.status == SearchStatus.SUCCESS


class TestTeardown:
    def test_close_discards_in_flight(self, harness):
        coordinator = harness["coordinator"]
        cancelled = []
        coordinator.on_close(lambda: cancelled.append(True))

        ticket = coordinator.begin(SearchFilters(query="knee pain"))
        states_before = len(harness["states"])
        coordinator.close()

        assert coordinator.closed
        assert cancelled == [True]
        assert not coordinator.complete(ticket, make_response(SearchFilters(query="knee pain")))
        assert not coordinator.fail(ticket, CollaboratorError())
        assert len(harness["states"]) == states_before
        assert harness["url"] == {}

    def test_submit_after_close_does_nothing(self, harness):
        coordinator = harness["coordinator"]
        coordinator.close()
        coordinator.close()
        coordinator.submit(SearchFilters(query="knee pain"))
        assert harness["collaborator"].calls == []


def test_select_result_tracks_event(harness):
    harness["coordinator"].select_result("p42")
    assert named(harness["events"], RESULT_SELECTED) == [{"result_id": "p42"}]
