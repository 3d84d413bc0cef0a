"""
healui_search/coordinator.py

Search Execution Coordinator: the state machine behind the search page.

States:
    IDLE     no request outstanding (a previous response may still be shown)
    LOADING  request outstanding
    SUCCESS  response received and displayed
    ERROR    failure recorded; the last good response stays visible unless
             keep_results_on_error is False

Every execution is tagged with a monotonically increasing sequence number.
A response older than the last applied one is discarded, so a slow first
request can never overwrite the results of a faster second one.

Fresh submissions, page changes and retries all route through ``begin`` /
``complete`` / ``fail``; ``submit`` runs the whole cycle synchronously.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from healui_search.analytics import AnalyticsTracker
from healui_search.config import ENABLE_VERBOSE_LOGGING, FEATURED_LIMIT, SEARCH_PAGE_LIMIT
from healui_search.errors import FEATURED_ERROR, GENERIC_SEARCH_ERROR, OFFLINE_MESSAGE, SearchError
from healui_search.filters import DEFAULT_FILTERS, SearchFilters, active_filter_count, has_active_filters
from healui_search.network import NetworkMonitor
from healui_search.schemas import Pagination, Provider, SearchResponse
from healui_search.suggestions import RecentSearches
from healui_search.timing import PerformanceTimer
from healui_search.url_sync import URLSynchronizer

FEATURED_SEARCH_ID = "featured"


class SearchCollaborator(Protocol):
    """The backend contract consumed by the coordinator (see SearchService)."""

    def search(self, filters: SearchFilters, page: int = 1, limit: int = SEARCH_PAGE_LIMIT) -> SearchResponse: ...

    def get_featured(self, category: Optional[str] = None, limit: int = FEATURED_LIMIT) -> Sequence[Provider]: ...

    def get_performance_metrics(self) -> Dict[str, Any]: ...


class SearchStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class RequestKind(str, Enum):
    SEARCH = "search"
    FEATURED = "featured"


class RequestOrigin(str, Enum):
    SUBMIT = "submit"
    PAGE_CHANGE = "page_change"
    RETRY = "retry"


@dataclass(frozen=True)
class SearchTicket:
    """One dispatched execution."""
    seq: int
    kind: RequestKind
    origin: RequestOrigin
    filters: SearchFilters
    page: int
    started_at: float


@dataclass(frozen=True)
class SearchState:
    """Snapshot handed to listeners after every transition."""
    status: SearchStatus = SearchStatus.IDLE
    response: Optional[SearchResponse] = None
    error: Optional[str] = None
    loading_seq: Optional[int] = None


StateListener = Callable[[SearchState], None]


class SearchCoordinator:
    def __init__(
        self,
        collaborator: SearchCollaborator,
        monitor: NetworkMonitor,
        url_sync: Optional[URLSynchronizer] = None,
        recent: Optional[RecentSearches] = None,
        analytics: Optional[AnalyticsTracker] = None,
        timer: Optional[PerformanceTimer] = None,
        limit: int = SEARCH_PAGE_LIMIT,
        keep_results_on_error: bool = True,
    ) -> None:
        self.collaborator = collaborator
        self.monitor = monitor
        self.url_sync = url_sync
        self.recent = recent
        self.analytics = analytics or AnalyticsTracker()
        self.timer = timer or PerformanceTimer(on_complete=self.analytics.timing_complete)
        self.limit = limit
        self.keep_results_on_error = keep_results_on_error

        self.state = SearchState()
        self.last_request: Optional[SearchTicket] = None
        self._issued_seq = 0
        self._applied_seq = 0
        self._closed = False
        self._listeners: List[StateListener] = []
        self._teardown: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def status(self) -> SearchStatus:
        return self.state.status

    @property
    def response(self) -> Optional[SearchResponse]:
        return self.state.response

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def loading(self) -> bool:
        return self.state.status == SearchStatus.LOADING

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_close(self, callback: Callable[[], None]) -> None:
        """Register teardown work (pending debounce timers, etc.)."""
        self._teardown.append(callback)

    # ------------------------------------------------------------------
    # High-level operations
    # ------------------------------------------------------------------

    def submit(self, filters: SearchFilters, page: int = 1) -> SearchStatus:
        """Explicit search (Enter key / Search button). Never debounced."""
        return self._run(filters, page, RequestOrigin.SUBMIT)

    def change_page(self, page: int) -> SearchStatus:
        """Re-run the last successful search on another page."""
        response = self.state.response
        if response is None or response.search_id == FEATURED_SEARCH_ID:
            return self.status
        total_pages = response.pagination.total_pages
        if total_pages > 0:
            page = min(page, total_pages)
        return self._run(response.applied_filters, max(1, page), RequestOrigin.PAGE_CHANGE)

    def retry(self) -> SearchStatus:
        """Re-issue the last request, or fall back to the featured listing."""
        last = self.last_request
        if last is None:
            return self._run(DEFAULT_FILTERS, 1, RequestOrigin.RETRY)
        return self._run(last.filters, last.page, RequestOrigin.RETRY)

    def load_featured(self) -> SearchStatus:
        return self._run(DEFAULT_FILTERS, 1, RequestOrigin.SUBMIT)

    def select_result(self, result_id: str) -> None:
        self.analytics.result_selected(result_id)

    def close(self) -> None:
        """Tear down: in-flight completions are ignored and listeners dropped."""
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        for callback in self._teardown:
            callback()
        self._teardown.clear()

    # ------------------------------------------------------------------
    # Sequence-tagged lifecycle
    # ------------------------------------------------------------------

    def begin(
        self,
        filters: SearchFilters,
        page: int = 1,
        origin: RequestOrigin = RequestOrigin.SUBMIT,
    ) -> Optional[SearchTicket]:
        """
        Enter LOADING and return a ticket for the dispatched request.

        Returns None without dispatching when closed or offline (the latter
        moves straight to ERROR with the connectivity message).
        """
        if self._closed:
            return None

        kind = RequestKind.SEARCH if has_active_filters(filters) else RequestKind.FEATURED
        self._issued_seq += 1
        ticket = SearchTicket(
            seq=self._issued_seq,
            kind=kind,
            origin=origin,
            filters=filters,
            page=page if kind == RequestKind.SEARCH else 1,
            started_at=self.timer.start(),
        )
        self.last_request = ticket

        if not self.monitor.is_online:
            self._applied_seq = ticket.seq
            self.timer.stop("search_blocked_offline", ticket.started_at)
            self._set_error(OFFLINE_MESSAGE)
            return None

        self._set_state(replace(self.state, status=SearchStatus.LOADING, error=None, loading_seq=ticket.seq))
        return ticket

    def dispatch(self, ticket: SearchTicket) -> SearchResponse:
        """Call the collaborator for ``ticket``. Raises whatever the collaborator raises."""
        if ticket.kind == RequestKind.FEATURED:
            featured = list(self.collaborator.get_featured(None, self.limit))
            return SearchResponse(
                results=featured,
                pagination=Pagination.single_page(len(featured), self.limit),
                search_id=FEATURED_SEARCH_ID,
                execution_time=0.0,
                applied_filters=ticket.filters,
            )
        return self.collaborator.search(ticket.filters, ticket.page, self.limit)

    def complete(self, ticket: SearchTicket, response: SearchResponse) -> bool:
        """Apply a successful response. Returns False when it was discarded as stale."""
        if self._is_stale(ticket):
            return False
        self._applied_seq = ticket.seq

        event = "featured_load" if ticket.kind == RequestKind.FEATURED else "search_execution"
        duration = self.timer.stop(event, ticket.started_at)
        if ticket.kind == RequestKind.FEATURED:
            response = response.model_copy(update={"execution_time": duration})

        if self.url_sync is not None:
            self.url_sync.write(response.applied_filters, ticket.page)

        if ticket.kind == RequestKind.SEARCH:
            query = response.applied_filters.query
            if self.recent is not None and query:
                self.recent.add(query)
            if ticket.origin != RequestOrigin.PAGE_CHANGE:
                self.analytics.search_submitted(query, active_filter_count(response.applied_filters))

        status = SearchStatus.SUCCESS if ticket.seq == self._issued_seq else SearchStatus.LOADING
        self._set_state(
            SearchState(
                status=status,
                response=response,
                error=None,
                loading_seq=None if status == SearchStatus.SUCCESS else self._issued_seq,
            )
        )
        return True

    def fail(self, ticket: SearchTicket, error: Exception) -> bool:
        """Record a failure. Returns False when a newer request superseded it."""
        if self._is_stale(ticket) or ticket.seq != self._issued_seq:
            return False
        self._applied_seq = ticket.seq
        self.timer.stop("search_failed", ticket.started_at)

        if isinstance(error, SearchError) and error.message:
            message = error.message
        elif ticket.kind == RequestKind.FEATURED:
            message = FEATURED_ERROR
        else:
            message = GENERIC_SEARCH_ERROR
        if ENABLE_VERBOSE_LOGGING:
            print(f"[SEARCH] {ticket.kind.value} #{ticket.seq} failed: {type(error).__name__}: {message}")
        self._set_error(message)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self, filters: SearchFilters, page: int, origin: RequestOrigin) -> SearchStatus:
        ticket = self.begin(filters, page, origin)
        if ticket is None:
            return self.status
        try:
            response = self.dispatch(ticket)
        except Exception as e:
            # Execution failures are recovered locally: inline message + retry
            self.fail(ticket, e)
        else:
            self.complete(ticket, response)
        return self.status

    def _is_stale(self, ticket: SearchTicket) -> bool:
        return self._closed or ticket.seq <= self._applied_seq

    def _set_error(self, message: str) -> None:
        response = self.state.response if self.keep_results_on_error else None
        self._set_state(SearchState(status=SearchStatus.ERROR, response=response, error=message))

    def _set_state(self, state: SearchState) -> None:
        self.state = state
        for listener in list(self._listeners):
            listener(state)
