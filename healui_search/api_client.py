"""
healui_search/api_client.py
Centralized API client for marketplace backend requests.

This module ensures:
1. All backend calls go through one function with one base URL (dev/staging/prod)
2. Transport failures become typed SearchError subclasses with safe messages
3. Every transport outcome is reported to the NetworkMonitor when one is given
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

import requests

from healui_search.config import ENABLE_VERBOSE_LOGGING, SEARCH_TIMEOUT_SECONDS, get_api_base_url
from healui_search.errors import CollaboratorError, ConnectivityError, SearchTimeoutError
from healui_search.network import NetworkMonitor

__all__ = ["api_request", "get_api_base_url"]


def api_request(
    method: Literal["GET", "POST"],
    path: str,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    timeout: int = SEARCH_TIMEOUT_SECONDS,
    monitor: Optional[NetworkMonitor] = None,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """
    Make an API request and return the response for any HTTP status.

    Args:
        method: HTTP method (GET, POST)
        path: Endpoint path relative to the base URL (e.g. "marketplace/physiotherapists/search")
        params: Query parameters; None values are dropped
        json: JSON body for POST requests
        timeout: Request timeout in seconds
        monitor: NetworkMonitor to update with reachability
        session: Optional requests.Session (connection reuse, tests)

    Returns:
        requests.Response (caller checks status / envelope)

    Raises:
        SearchTimeoutError: request exceeded ``timeout``
        ConnectivityError: backend could not be reached
        CollaboratorError: configuration or unexpected transport error
    """
    try:
        base_url = get_api_base_url()
    except (RuntimeError, ValueError) as e:
        raise CollaboratorError(f"Configuration error: {e}")

    url = f"{base_url}/{path.lstrip('/')}"
    headers = {"Accept": "application/json"}
    if json is not None:
        headers["Content-Type"] = "application/json"
    clean_params = {k: v for k, v in (params or {}).items() if v is not None}

    http = session or requests
    try:
        if method == "GET":
            resp = http.get(url, headers=headers, params=clean_params, timeout=timeout)
        elif method == "POST":
            resp = http.post(url, json=json, headers=headers, params=clean_params, timeout=timeout)
        else:
            raise ValueError(f"Unsupported HTTP method: {method}")

    except requests.exceptions.Timeout:
        if ENABLE_VERBOSE_LOGGING:
            print(f"[API] Timeout on {method} {path}")
        raise SearchTimeoutError()

    except requests.exceptions.ConnectionError:
        if ENABLE_VERBOSE_LOGGING:
            print(f"[API] Connection error on {method} {path}")
        if monitor is not None:
            monitor.mark_unreachable(f"connection error on {path}")
        raise ConnectivityError("Network connection issue. Please check your internet and try again.")

    except requests.exceptions.RequestException as e:
        # Never echo the URL (query params may carry user input)
        if ENABLE_VERBOSE_LOGGING:
            print(f"[API] Unexpected error on {method} {path}: {type(e).__name__}")
        raise CollaboratorError()

    if monitor is not None:
        monitor.mark_reachable()
    if ENABLE_VERBOSE_LOGGING and resp.status_code >= 400:
        print(f"[API] {resp.status_code} on {method} {path}")
    return resp
