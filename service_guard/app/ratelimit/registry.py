"""
Per-endpoint governance state.

A GovernanceRegistry owns every LimitWindow and ConcurrencySlot of a
process. It is created once and handed to the limiters, so tests can use a
fresh registry per case.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class LimitWindow:
    """Fixed-window call counter for one endpoint."""

    endpoint_key: str
    limit: int
    window_duration: float
    window_start: float
    count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


@dataclass
class ConcurrencySlot:
    """In-flight call counter for one endpoint."""

    endpoint_key: str
    limit: int
    in_flight: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class GovernanceRegistry:
    """Process-wide maps of rate windows and concurrency slots."""

    def __init__(self):
        self._windows: Dict[str, LimitWindow] = {}
        self._slots: Dict[str, ConcurrencySlot] = {}
        self._lock = threading.Lock()

    def window(self, endpoint_key: str, limit: int, window_duration: float, now: float) -> LimitWindow:
        """Get or lazily create the window for an endpoint."""
        window = self._windows.get(endpoint_key)
        if window is None:
            with self._lock:
                window = self._windows.setdefault(
                    endpoint_key,
                    LimitWindow(endpoint_key, limit, window_duration, window_start=now),
                )
        return window

    def slot(self, endpoint_key: str, limit: int) -> ConcurrencySlot:
        """Get or lazily create the concurrency slot for an endpoint."""
        slot = self._slots.get(endpoint_key)
        if slot is None:
            with self._lock:
                slot = self._slots.setdefault(endpoint_key, ConcurrencySlot(endpoint_key, limit))
        return slot

    def find_window(self, endpoint_key: str):
        return self._windows.get(endpoint_key)

    def find_slot(self, endpoint_key: str):
        return self._slots.get(endpoint_key)

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        """Current counts per endpoint, for status reporting."""
        with self._lock:
            windows = list(self._windows.values())
            slots = list(self._slots.values())

        status: Dict[str, Dict[str, int]] = {}
        for window in windows:
            status.setdefault(window.endpoint_key, {}).update(
                {"count": window.count, "rate_limit": window.limit}
            )
        for slot in slots:
            status.setdefault(slot.endpoint_key, {}).update(
                {"in_flight": slot.in_flight, "concurrency_limit": slot.limit}
            )
        return status
