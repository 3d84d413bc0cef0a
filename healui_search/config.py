# healui_search/config.py
# Environment-aware configuration for the HealUI search client

import os
from pathlib import Path
from typing import Literal, Optional

Env = Literal["local", "staging", "production"]

# Unknown or missing ENV is treated as production (strictest URL rules)
_raw_env = os.environ.get("ENV", "production").strip().lower()
ENV: Env = _raw_env if _raw_env in ("local", "staging", "production") else "production"  # type: ignore

IS_DEV = ENV == "local"
IS_STAGING = ENV == "staging"

LOCAL_API_URL = "http://127.0.0.1:8000"

# Checked in order; the first non-empty one wins
API_URL_ENV_VARS = ("BACKEND_URL", "API_BASE_URL")


def validate_api_url(url: str, env: str) -> None:
    """
    Reject base URLs that are unsafe for ``env``.

    Staging and production must be HTTPS and must not point at localhost.

    Raises:
        ValueError: empty or unsafe URL
    """
    if not url:
        raise ValueError("Marketplace API URL cannot be empty")
    if env == "local":
        return
    if not url.startswith("https://"):
        raise ValueError(f"{env} requires an HTTPS marketplace API URL. Got: {url}")
    if "127.0.0.1" in url or "localhost" in url:
        raise ValueError(f"{env} cannot use a localhost marketplace API URL. Got: {url}")


def get_api_base_url(env: Optional[str] = None) -> str:
    """
    Resolve the marketplace API base URL (trailing slash removed).

    BACKEND_URL, then API_BASE_URL; local runs fall back to LOCAL_API_URL.

    Raises:
        ValueError: configured URL fails validate_api_url
        RuntimeError: staging/production with nothing configured
    """
    env = env or ENV
    for name in API_URL_ENV_VARS:
        configured = os.environ.get(name, "").strip().rstrip("/")
        if configured:
            validate_api_url(configured, env)
            return configured

    if env == "local":
        return LOCAL_API_URL

    raise RuntimeError(
        f"Marketplace API URL not configured for {env}. "
        f"Set BACKEND_URL (HTTPS, not localhost)."
    )


# Search request shape (client-chosen, not user-controllable)
SEARCH_PAGE_LIMIT = int(os.environ.get("SEARCH_PAGE_LIMIT", "12"))
FEATURED_LIMIT = int(os.environ.get("FEATURED_LIMIT", "12"))
DEFAULT_RADIUS_KM = 15

# Suggestions + recent searches
SUGGESTION_DEBOUNCE_MS = int(os.environ.get("SUGGESTION_DEBOUNCE_MS", "300"))
MAX_SUGGESTIONS = 6
MAX_RECENT_SEARCHES = 5
RECENT_SEARCHES_KEY = "healui_recent_searches"
MIN_LOCATION_QUERY = 2

# Device-local key-value store (recent searches survive reloads)
LOCAL_STORE_PATH = os.environ.get(
    "HEALUI_LOCAL_STORE", str(Path.home() / ".healui" / "local_store.sqlite3")
)
LOCAL_STORE_PROFILE = os.environ.get("HEALUI_PROFILE", "default")

# Collaborator behaviour
SEARCH_TIMEOUT_SECONDS = int(os.environ.get("SEARCH_TIMEOUT_SECONDS", "10"))
CACHE_TTL_SECONDS = int(os.environ.get("CACHE_TTL_SECONDS", "300"))
MAX_CACHE_SIZE = int(os.environ.get("MAX_CACHE_SIZE", "100"))

# Analytics timeline kept in session state
MAX_TIMELINE_EVENTS = 100

# Feature flags
ENABLE_DEBUG_UI = IS_DEV  # Show search id / timing / cache panel only in dev
ENABLE_VERBOSE_LOGGING = IS_DEV or IS_STAGING

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Page limit: {SEARCH_PAGE_LIMIT} | Debounce: {SUGGESTION_DEBOUNCE_MS}ms")
