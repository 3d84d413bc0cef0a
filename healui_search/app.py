# healui_search/app.py
# HealUI – Physiotherapist search page
#
# Run from repo root: streamlit run healui_search/app.py

from __future__ import annotations

import sqlite3
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

# Allow `streamlit run healui_search/app.py` without an installed package
sys.path.insert(0, str(Path(__file__).parent.parent))

from healui_search.analytics import AnalyticsTracker, SessionEventSink
from healui_search.config import ENABLE_DEBUG_UI, ENABLE_VERBOSE_LOGGING, SUGGESTION_DEBOUNCE_MS
from healui_search.coordinator import SearchCoordinator, SearchStatus
from healui_search.debounce import Debouncer
from healui_search.error_boundary import RECOVERY_MESSAGE, RECOVERY_TITLE, ErrorBoundary
from healui_search.filters import (
    Availability,
    SearchFilters,
    ServiceType,
    SortBy,
    active_filter_count,
    has_active_filters,
)
from healui_search.network import NetworkMonitor
from healui_search.pagination import ELLIPSIS, page_window
from healui_search.schemas import Provider, SearchResponse, SuggestionType
from healui_search.search_service import SearchService
from healui_search.storage import LocalStore
from healui_search.suggestions import (
    RecentSearches,
    SuggestionEngine,
    location_suggestions,
    refresh_suggestions,
)
from healui_search.url_sync import URLSynchronizer

st.set_page_config(page_title="Find Expert Physiotherapists", page_icon="🩺", layout="wide")

MAX_RADIUS_KM = 50
SEARCH_PLACEHOLDER = "Search physiotherapists, specializations, or conditions..."

SERVICE_TYPE_LABELS = {
    ServiceType.ALL: "All services",
    ServiceType.HOME_VISIT: "Home visit",
    ServiceType.ONLINE: "Online consultation",
}
AVAILABILITY_LABELS = {
    Availability.ALL: "Any time",
    Availability.TODAY: "Today",
    Availability.THIS_WEEK: "This week",
    Availability.SPECIFIC_DATE: "Specific date",
}
SORT_LABELS = {
    SortBy.RELEVANCE: "Relevance",
    SortBy.RATING: "Rating",
    SortBy.PRICE: "Price",
    SortBy.DISTANCE: "Distance",
}
SUGGESTION_ICONS = {
    SuggestionType.RECENT: "🕘",
    SuggestionType.POPULAR: "🔥",
    SuggestionType.CONDITION: "📈",
    SuggestionType.LOCATION: "📍",
}

# Widget keys owned by the search bar
W_QUERY = "w_query"
W_LOCATION = "w_location"
W_PINCODE = "w_pincode"
W_SPECIALIZATION = "w_specialization"
W_SERVICE_TYPE = "w_service_type"
W_AVAILABILITY = "w_availability"
W_SPECIFIC_DATE = "w_specific_date"
W_MIN_RATING = "w_min_rating"
W_MAX_PRICE = "w_max_price"
W_SORT_BY = "w_sort_by"
W_USE_LOCATION = "w_use_current_location"
W_LAT = "w_lat"
W_LNG = "w_lng"
W_RADIUS = "w_radius"

# --------------------------------------------------------------------
# State helpers
# --------------------------------------------------------------------


def init_search_state() -> None:
    """Create the per-session search objects once. Idempotent across reruns."""
    ss = st.session_state

    if "search_monitor" not in ss:
        ss["search_monitor"] = NetworkMonitor(initial_online=True)
    if "search_service" not in ss:
        ss["search_service"] = SearchService(monitor=ss["search_monitor"])
    if "search_analytics" not in ss:
        ss["search_analytics"] = AnalyticsTracker([SessionEventSink(ss)])
    if "search_local_store" not in ss:
        ss["search_local_store"] = open_local_store()
    if "search_coordinator" not in ss:
        coordinator = SearchCoordinator(
            collaborator=ss["search_service"],
            monitor=ss["search_monitor"],
            url_sync=URLSynchronizer(st.query_params),
            recent=RecentSearches(ss["search_local_store"]),
            analytics=ss["search_analytics"],
        )
        ss["search_coordinator"] = coordinator
    if "search_debouncer" not in ss:
        debouncer: Debouncer[str] = Debouncer("", delay_ms=SUGGESTION_DEBOUNCE_MS)
        ss["search_debouncer"] = debouncer
        ss["search_coordinator"].on_close(debouncer.cancel)
    if "search_suggestions" not in ss:
        ss["search_suggestions"] = SuggestionEngine()
    if "search_boundary" not in ss:
        ss["search_boundary"] = ErrorBoundary(
            render_fallback=render_recovery_panel,
            on_error=report_render_error,
            analytics=ss["search_analytics"],
        )

    ss.setdefault("_search_mounted", False)
    ss.setdefault("_selected_provider_id", None)


def open_local_store() -> Any:
    """Device-local store for recent searches; session-only if the file can't be opened."""
    try:
        return LocalStore()
    except (OSError, sqlite3.Error) as e:
        print(f"[STORE] Local store unavailable, recent searches kept for this session only: {type(e).__name__}")
        return {}


def request_submit() -> None:
    """on_change of the query box: Enter submits on the next run."""
    st.session_state["_apply_submit"] = True


def reset_search_state() -> None:
    """Tear down the current search session (in-flight results are ignored)."""
    ss = st.session_state
    coordinator: Optional[SearchCoordinator] = ss.get("search_coordinator")
    if coordinator is not None:
        coordinator.close()
    for key in ("search_coordinator", "search_debouncer", "search_boundary", "_selected_provider_id"):
        ss.pop(key, None)
    ss["_search_mounted"] = False
    ss["_apply_filters"] = SearchFilters()
    st.query_params.clear()


def filters_to_widgets(filters: SearchFilters) -> Dict[str, Any]:
    return {
        W_QUERY: filters.query,
        W_LOCATION: filters.location,
        W_PINCODE: filters.pincode,
        W_SPECIALIZATION: filters.specialization,
        W_SERVICE_TYPE: filters.service_type,
        W_AVAILABILITY: filters.availability,
        W_SPECIFIC_DATE: date.fromisoformat(filters.specific_date) if _is_iso_date(filters.specific_date) else None,
        W_MIN_RATING: float(filters.min_rating),
        W_MAX_PRICE: int(filters.max_price or 0),
        W_SORT_BY: filters.sort_by,
        W_USE_LOCATION: filters.use_current_location,
        W_LAT: filters.lat,
        W_LNG: filters.lng,
        W_RADIUS: min(filters.radius, MAX_RADIUS_KM),
    }


def filters_from_widgets() -> SearchFilters:
    ss = st.session_state
    availability = ss.get(W_AVAILABILITY, Availability.ALL)
    specific = ss.get(W_SPECIFIC_DATE)
    return SearchFilters(
        query=ss.get(W_QUERY, ""),
        location=ss.get(W_LOCATION, ""),
        pincode=ss.get(W_PINCODE, ""),
        specialization=ss.get(W_SPECIALIZATION, ""),
        service_type=ss.get(W_SERVICE_TYPE, ServiceType.ALL),
        availability=availability,
        specific_date=specific.isoformat() if availability == Availability.SPECIFIC_DATE and specific else None,
        min_rating=ss.get(W_MIN_RATING, 0.0),
        max_price=ss.get(W_MAX_PRICE) or None,
        sort_by=ss.get(W_SORT_BY, SortBy.RELEVANCE),
        use_current_location=ss.get(W_USE_LOCATION, False),
        lat=ss.get(W_LAT),
        lng=ss.get(W_LNG),
        radius=ss.get(W_RADIUS, 15),
    )


def _is_iso_date(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def apply_pending_actions() -> None:
    """
    Apply deferred widget writes BEFORE any widget is created.

    Writing to a widget-owned key after the widget exists is an error in
    Streamlit, so suggestion clicks and URL restores park their values in
    ``_apply_*`` keys and are applied here on the next run.
    """
    ss = st.session_state
    coordinator: SearchCoordinator = ss["search_coordinator"]

    if not ss["_search_mounted"]:
        ss["_search_mounted"] = True
        url_state = coordinator.url_sync.read() if coordinator.url_sync else None
        if url_state is not None:
            ss.update(filters_to_widgets(url_state.filters))
            ss["search_debouncer"].settled = url_state.filters.query
            with st.spinner("Loading search..."):
                coordinator.submit(url_state.filters, url_state.page)

    pending_filters: Optional[SearchFilters] = ss.pop("_apply_filters", None)
    if pending_filters is not None:
        ss.update(filters_to_widgets(pending_filters))

    pending_query: Optional[str] = ss.pop("_apply_query", None)
    if pending_query is not None:
        ss[W_QUERY] = pending_query
        with st.spinner("Searching physiotherapists..."):
            coordinator.submit(filters_from_widgets(), 1)


def ping_backend_if_needed(force: bool = False) -> None:
    """Ping the backend while offline so the banner clears once it is reachable."""
    ss = st.session_state
    monitor: NetworkMonitor = ss["search_monitor"]
    if monitor.should_ping(force=force):
        ss["search_service"].ping()


def report_render_error(error: Exception) -> None:
    if ENABLE_VERBOSE_LOGGING:
        print(f"[BOUNDARY] Search results error reported: {type(error).__name__}")


# --------------------------------------------------------------------
# Search bar
# --------------------------------------------------------------------


def render_offline_banner() -> None:
    monitor: NetworkMonitor = st.session_state["search_monitor"]
    banner = monitor.offline_banner()
    if banner:
        col_msg, col_btn = st.columns([5, 1])
        with col_msg:
            st.error(f"📡 {banner}")
        with col_btn:
            if st.button("Check connection", key="offline_check"):
                ping_backend_if_needed(force=True)
                st.rerun()
    elif monitor.reconnected():
        st.success("✅ Back online. Resubmit your search or hit Retry.")


def render_search_bar() -> None:
    ss = st.session_state
    coordinator: SearchCoordinator = ss["search_coordinator"]

    col_query, col_button = st.columns([5, 1])
    with col_query:
        st.text_input(
            "Search",
            key=W_QUERY,
            placeholder=SEARCH_PLACEHOLDER,
            label_visibility="collapsed",
            on_change=request_submit,
        )
    with col_button:
        search_clicked = st.button("🔍 Search", key="search_submit", type="primary", use_container_width=True)
    # Editing then clicking Search fires both; submit once
    enter_pressed = ss.pop("_apply_submit", False)

    render_suggestions()

    filters_now = filters_from_widgets()
    badge = active_filter_count(filters_now)
    with st.expander(f"Filters ({badge} active)" if badge else "Filters"):
        render_filter_panel()
        col_clear, _ = st.columns([1, 4])
        with col_clear:
            if st.button("Clear all filters", key="search_clear", disabled=not has_active_filters(filters_now)):
                reset_search_state()
                st.rerun()

    if search_clicked or enter_pressed:
        filters = filters_from_widgets()
        with st.spinner("Searching physiotherapists..."):
            coordinator.submit(filters, 1)


def render_filter_panel() -> None:
    service: SearchService = st.session_state["search_service"]
    specializations = [""] + service.get_specializations()
    current = st.session_state.get(W_SPECIALIZATION, "")
    if current and current not in specializations:
        specializations.append(current)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.text_input("Location", key=W_LOCATION, placeholder="Area or city")
        render_location_suggestions(service)
        st.text_input("Pincode", key=W_PINCODE, placeholder="560001")
        st.selectbox(
            "Specialization",
            options=specializations,
            key=W_SPECIALIZATION,
            format_func=lambda s: s or "Any specialization",
        )
    with col2:
        st.selectbox("Service type", options=list(ServiceType), key=W_SERVICE_TYPE, format_func=SERVICE_TYPE_LABELS.get)
        st.selectbox("Availability", options=list(Availability), key=W_AVAILABILITY, format_func=AVAILABILITY_LABELS.get)
        if st.session_state.get(W_AVAILABILITY) == Availability.SPECIFIC_DATE:
            st.date_input("Date", key=W_SPECIFIC_DATE, min_value=date.today())
        st.selectbox("Sort by", options=list(SortBy), key=W_SORT_BY, format_func=SORT_LABELS.get)
    with col3:
        st.slider("Minimum rating", 0.0, 5.0, step=0.5, key=W_MIN_RATING)
        st.number_input("Max price (₹, 0 = any)", min_value=0, step=100, key=W_MAX_PRICE)
        st.checkbox("Use my location", key=W_USE_LOCATION)
        if st.session_state.get(W_USE_LOCATION):
            st.number_input("Latitude", min_value=-90.0, max_value=90.0, format="%.5f", key=W_LAT)
            st.number_input("Longitude", min_value=-180.0, max_value=180.0, format="%.5f", key=W_LNG)
            st.slider("Radius (km)", 1, MAX_RADIUS_KM, key=W_RADIUS)


def render_location_suggestions(service: SearchService) -> None:
    """LOCATION chips under the Location box; a click fills it in."""
    current = st.session_state.get(W_LOCATION, "")
    suggestions = location_suggestions(service.get_location_suggestions(current), current)
    for suggestion in suggestions:
        icon = SUGGESTION_ICONS[SuggestionType.LOCATION]
        if st.button(f"{icon} {suggestion.text}", key=f"sugg_{suggestion.id}"):
            st.session_state["_apply_filters"] = filters_from_widgets().replace(location=suggestion.text)
            st.rerun()


@st.fragment(run_every=SUGGESTION_DEBOUNCE_MS / 1000.0)
def render_suggestions() -> None:
    """Suggestion chips; refresh only once the typed query has settled."""
    ss = st.session_state
    recent = RecentSearches(ss["search_local_store"]).load()
    suggestions = refresh_suggestions(
        ss["search_suggestions"], ss["search_debouncer"], ss.get(W_QUERY, ""), recent
    )
    if not suggestions:
        return

    cols = st.columns(len(suggestions))
    for col, suggestion in zip(cols, suggestions):
        icon = SUGGESTION_ICONS.get(suggestion.type, "📈")
        with col:
            if st.button(f"{icon} {suggestion.text}", key=f"sugg_{suggestion.id}", use_container_width=True):
                ss["_apply_query"] = suggestion.text
                st.rerun(scope="app")


# --------------------------------------------------------------------
# Results
# --------------------------------------------------------------------


def render_recovery_panel(boundary: ErrorBoundary) -> None:
    st.error(f"⚠️ {RECOVERY_TITLE}")
    st.write(RECOVERY_MESSAGE)
    if st.button("Reload Page", key="boundary_reload", type="primary"):
        boundary.reset()
        st.rerun()


def render_status(coordinator: SearchCoordinator) -> None:
    if coordinator.status == SearchStatus.ERROR and coordinator.error:
        col_msg, col_btn = st.columns([5, 1])
        with col_msg:
            st.error(f"❌ {coordinator.error}")
        with col_btn:
            if st.button("🔄 Retry", key="search_retry", use_container_width=True):
                with st.spinner("Retrying..."):
                    coordinator.retry()
                st.rerun()


def render_results(coordinator: SearchCoordinator) -> None:
    response = coordinator.response
    if response is None:
        return
    if not response.results:
        st.info("No physiotherapists found matching your criteria. Try removing some filters.")
        return

    total = response.pagination.total
    if response.search_id == "featured":
        st.markdown("### Featured physiotherapists")
    else:
        st.markdown(f"### {total} physiotherapist{'s' if total != 1 else ''} found")

    st.dataframe(
        results_frame(response.results),
        use_container_width=True,
        hide_index=True,
        column_config={
            "average_rating": st.column_config.NumberColumn("Rating", format="%.1f ⭐"),
            "total_reviews": "Reviews",
            "full_name": "Name",
            "specializations": "Specializations",
            "years_of_experience": "Experience (yrs)",
            "consultation_fee": "Online fee",
            "home_visit_fee": "Home visit fee",
            "practice_address": "Address",
        },
    )

    options = [None] + [p.id for p in response.results]
    names = {p.id: p.full_name for p in response.results}
    selected_id = st.selectbox(
        "View profile",
        options=options,
        format_func=lambda x: "-- Select --" if x is None else names.get(x, x),
        key="search_selected_provider",
    )
    if selected_id and selected_id != st.session_state.get("_selected_provider_id"):
        st.session_state["_selected_provider_id"] = selected_id
        coordinator.select_result(selected_id)
    if selected_id:
        render_provider_detail(next(p for p in response.results if p.id == selected_id))

    render_pagination(coordinator, response)


def results_frame(results: List[Provider]) -> pd.DataFrame:
    rows = []
    for p in results:
        rows.append(
            {
                "full_name": p.full_name + (" ✔" if p.is_verified else ""),
                "specializations": ", ".join(p.specializations),
                "years_of_experience": p.years_of_experience,
                "average_rating": p.average_rating,
                "total_reviews": p.total_reviews,
                "consultation_fee": p.consultation_fee if p.online_consultation_available else None,
                "home_visit_fee": p.home_visit_fee if p.home_visit_available else None,
                "practice_address": p.practice_address,
            }
        )
    return pd.DataFrame(rows)


def render_provider_detail(provider: Provider) -> None:
    st.markdown("---")
    col_a, col_b, col_c = st.columns(3)
    with col_a:
        st.metric("Physiotherapist", provider.full_name)
        st.metric("Experience", f"{provider.years_of_experience or 0} yrs")
    with col_b:
        st.metric("Rating", f"{provider.average_rating:.1f} ({provider.total_reviews} reviews)")
        st.metric("Status", provider.availability_status.value.title() if provider.availability_status else "N/A")
    with col_c:
        st.metric("Online fee", provider.consultation_fee or "N/A")
        st.metric("Home visit fee", provider.home_visit_fee or "N/A")
    if provider.bio:
        st.caption(provider.bio)
    st.link_button("📅 View profile & book", f"/physiotherapist/{provider.id}")


def render_pagination(coordinator: SearchCoordinator, response: SearchResponse) -> None:
    pagination = response.pagination
    tokens = page_window(pagination.page, pagination.total_pages)
    if len(tokens) <= 1:
        return

    # Callbacks run before the next script run, so no st.rerun() inside the boundary
    cols = st.columns(len(tokens) + 2)
    with cols[0]:
        st.button(
            "‹",
            key="page_prev",
            disabled=not pagination.has_prev,
            on_click=coordinator.change_page,
            args=(pagination.page - 1,),
        )
    for index, token in enumerate(tokens, start=1):
        with cols[index]:
            if token == ELLIPSIS:
                st.markdown("…")
            else:
                st.button(
                    str(token),
                    key=f"page_{token}",
                    type="primary" if token == pagination.page else "secondary",
                    disabled=token == pagination.page,
                    on_click=coordinator.change_page,
                    args=(int(token),),
                )
    with cols[-1]:
        st.button(
            "›",
            key="page_next",
            disabled=not pagination.has_next,
            on_click=coordinator.change_page,
            args=(pagination.page + 1,),
        )


def render_debug_panel(coordinator: SearchCoordinator) -> None:
    response = coordinator.response
    if not ENABLE_DEBUG_UI or response is None:
        return
    metrics = st.session_state["search_service"].get_performance_metrics()
    st.caption(
        f"Search ID: {response.search_id} | Execution Time: {response.execution_time:.0f}ms | "
        f"Results: {len(response.results)} | Cache Hit Rate: {metrics['cache_hit_rate'] * 100:.1f}%"
    )
    with st.expander("Search events"):
        st.json(SessionEventSink(st.session_state).recent(limit=20))


# --------------------------------------------------------------------
# Page
# --------------------------------------------------------------------


def main() -> None:
    init_search_state()
    apply_pending_actions()
    ping_backend_if_needed()

    ss = st.session_state
    coordinator: SearchCoordinator = ss["search_coordinator"]
    boundary: ErrorBoundary = ss["search_boundary"]

    render_offline_banner()
    render_search_bar()

    response = coordinator.response
    if response is None or not response.applied_filters.query:
        st.markdown("## Find Expert Physiotherapists")
        st.caption("Connect with verified physiotherapy professionals for home visits and online consultations")

    render_status(coordinator)
    boundary.render(render_results, coordinator)
    render_debug_panel(coordinator)


if __name__ == "__main__":
    main()
