"""
healui_search/errors.py
Error taxonomy for search execution.

Every error carries a user-safe message that the coordinator can show
inline next to the retry affordance. None of these are fatal to the page.
"""

from __future__ import annotations

from typing import Optional


GENERIC_SEARCH_ERROR = "Search failed. Please try again."
OFFLINE_MESSAGE = "No internet connection. Please check your network and try again."
FEATURED_ERROR = "Failed to load physiotherapists. Please try again."


class SearchError(Exception):
    """Base class for search failures surfaced to the user."""

    def __init__(self, message: str = GENERIC_SEARCH_ERROR) -> None:
        super().__init__(message)
        self.message = message


class ConnectivityError(SearchError):
    """Raised before dispatch when the client is offline or the backend is unreachable."""

    def __init__(self, message: str = OFFLINE_MESSAGE) -> None:
        super().__init__(message)


class CollaboratorError(SearchError):
    """Backend rejected or failed the request."""

    def __init__(self, message: str = GENERIC_SEARCH_ERROR, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SearchTimeoutError(CollaboratorError):
    """Backend did not answer within the configured timeout."""

    def __init__(self, message: str = "Search request timeout") -> None:
        super().__init__(message)
