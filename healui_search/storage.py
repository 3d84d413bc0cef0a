# healui_search/storage.py
# Device-local key-value store backed by SQLite (survives page reloads and restarts)

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, MutableMapping

from healui_search.config import ENABLE_VERBOSE_LOGGING, LOCAL_STORE_PATH, LOCAL_STORE_PROFILE

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    profile TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (profile, key)
)
"""


class LocalStore(MutableMapping[str, str]):
    """
    String key-value mapping persisted in a SQLite file, namespaced by profile.

    A connection is opened per operation: Streamlit reruns on different
    threads and sqlite3 connections are bound to the thread that made them.
    """

    def __init__(self, path: str = LOCAL_STORE_PATH, profile: str = LOCAL_STORE_PROFILE) -> None:
        self.path = path
        self.profile = profile
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
        with self._conn() as conn:
            conn.execute(_SCHEMA)
        if ENABLE_VERBOSE_LOGGING:
            print(f"[STORE] Using {path} (profile={profile})")

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def __getitem__(self, key: str) -> str:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE profile = ? AND key = ?", (self.profile, key)
            ).fetchone()
        if row is None:
            raise KeyError(key)
        return row[0]

    def __setitem__(self, key: str, value: str) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (profile, key, value) VALUES (?, ?, ?)",
                (self.profile, key, str(value)),
            )

    def __delitem__(self, key: str) -> None:
        with self._conn() as conn:
            deleted = conn.execute("DELETE FROM kv_store WHERE profile = ? AND key = ?", (self.profile, key)).rowcount
        if deleted == 0:
            raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_store WHERE profile = ? ORDER BY key", (self.profile,)
            ).fetchall()
        return iter([row[0] for row in rows])

    def __len__(self) -> int:
        with self._conn() as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM kv_store WHERE profile = ?", (self.profile,)).fetchone()
        return count
