"""
healui_search/network.py

Connectivity tracking for the search page.

The monitor flips between ONLINE and OFFLINE on explicit platform signals
(``set_online`` / ``set_offline``) and on transport outcomes reported by the
API client. Going back online never retries anything by itself; the user
resubmits or hits Retry.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable, List, Optional

from healui_search.config import ENABLE_VERBOSE_LOGGING

OFFLINE_BANNER = "You're offline. Some features may not work properly."

# Minimum gap between reachability pings while offline
PING_INTERVAL_SECONDS = 3.0


class NetworkStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


StatusListener = Callable[[NetworkStatus, NetworkStatus], None]


class NetworkMonitor:
    def __init__(self, initial_online: bool = True, clock: Callable[[], float] = time.time) -> None:
        self.status = NetworkStatus.ONLINE if initial_online else NetworkStatus.OFFLINE
        self.clock = clock
        self.last_change_ts = clock()
        self.last_error: Optional[str] = None
        self.was_down = not initial_online
        self.last_ping_ts = 0.0
        self._listeners: List[StatusListener] = []

    @property
    def is_online(self) -> bool:
        return self.status == NetworkStatus.ONLINE

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register for (old, new) transitions. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self) -> None:
        self._transition(NetworkStatus.ONLINE)

    def set_offline(self, err_msg: Optional[str] = None) -> None:
        self.last_error = err_msg
        self._transition(NetworkStatus.OFFLINE)

    # Transport outcomes from api_client
    def mark_reachable(self) -> None:
        self.last_error = None
        self.set_online()

    def mark_unreachable(self, err_msg: Optional[str] = None) -> None:
        if err_msg and ENABLE_VERBOSE_LOGGING:
            print(f"[NETWORK] Unreachable: {err_msg[:80]}")
        self.set_offline(err_msg)

    def should_ping(self, force: bool = False) -> bool:
        """Throttle reachability pings; only worth doing while offline."""
        if self.is_online:
            return False
        if force:
            return True
        return self.clock() - self.last_ping_ts >= PING_INTERVAL_SECONDS

    def record_ping(self) -> None:
        self.last_ping_ts = self.clock()

    def offline_banner(self) -> Optional[str]:
        return None if self.is_online else OFFLINE_BANNER

    def reconnected(self) -> bool:
        """True once after an OFFLINE -> ONLINE recovery (for a one-shot notice)."""
        if self.is_online and self.was_down:
            self.was_down = False
            return True
        return False

    def _transition(self, new_status: NetworkStatus) -> None:
        old_status = self.status
        if old_status == new_status:
            return
        self.status = new_status
        self.last_change_ts = self.clock()
        if new_status == NetworkStatus.OFFLINE:
            self.was_down = True
        if ENABLE_VERBOSE_LOGGING:
            print(f"[NETWORK] {old_status.value} -> {new_status.value}")
        for listener in list(self._listeners):
            listener(old_status, new_status)
