"""
Concurrency limiter for Guard service.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger

from .registry import GovernanceRegistry


class SlotLease:
    """Release token for one admitted call.

    Releasing is idempotent: only the first call decrements the slot. Use as
    a (sync or async) context manager to release on every exit path.
    """

    def __init__(self, limiter: "ConcurrencyLimiter", endpoint_key: str):
        self.limiter = limiter
        self.endpoint_key = endpoint_key
        self._released = False
        self._lock = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        with self._lock:
            if self._released:
                return False
            self._released = True
        self.limiter.release(self.endpoint_key)
        return True

    def __enter__(self) -> "SlotLease":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    async def __aenter__(self) -> "SlotLease":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()


@dataclass(frozen=True)
class ConcurrencyResult:
    """Result of a concurrency slot acquisition."""

    acquired: bool
    in_flight: int
    limit: int
    lease: Optional[SlotLease] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"acquired": self.acquired, "in_flight": self.in_flight, "limit": self.limit}


class ConcurrencyLimiter:
    """Bounds the number of simultaneously executing calls per endpoint."""

    def __init__(self, registry: GovernanceRegistry, on_change: Optional[Callable[[str, int], None]] = None):
        self.registry = registry
        self.on_change = on_change
        self.logger = get_logger("guard.concurrency_limiter")

    def try_acquire(self, endpoint_key: str, limit: int) -> ConcurrencyResult:
        """Take a slot if fewer than ``limit`` calls are in flight.

        A rejected attempt leaves the slot untouched.
        """
        slot = self.registry.slot(endpoint_key, limit)

        with slot.lock:
            slot.limit = limit
            if slot.in_flight >= limit:
                in_flight = slot.in_flight
                acquired = False
            else:
                slot.in_flight += 1
                in_flight = slot.in_flight
                acquired = True

        if not acquired:
            self.logger.warning(
                "Concurrency limit exceeded",
                endpoint=endpoint_key,
                in_flight=in_flight,
                limit=limit
            )
            return ConcurrencyResult(False, in_flight, limit)

        self._notify(endpoint_key, in_flight)
        return ConcurrencyResult(True, in_flight, limit, SlotLease(self, endpoint_key))

    def release(self, endpoint_key: str) -> int:
        """Give back one slot. Never drops below zero."""
        slot = self.registry.find_slot(endpoint_key)
        if slot is None:
            return 0

        with slot.lock:
            if slot.in_flight > 0:
                slot.in_flight -= 1
            else:
                self.logger.warning("Release without matching acquire", endpoint=endpoint_key)
            in_flight = slot.in_flight

        self._notify(endpoint_key, in_flight)
        return in_flight

    def in_flight(self, endpoint_key: str) -> int:
        slot = self.registry.find_slot(endpoint_key)
        return slot.in_flight if slot is not None else 0

    def _notify(self, endpoint_key: str, in_flight: int) -> None:
        if self.on_change is not None:
            self.on_change(endpoint_key, in_flight)
