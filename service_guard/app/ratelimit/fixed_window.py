"""
Fixed window rate limiter for Guard service.
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger

from .registry import GovernanceRegistry


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    current_count: int
    limit: int
    reset_in_seconds: float

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_in_seconds))

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "allowed": self.allowed,
            "current_count": self.current_count,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_in_seconds": math.ceil(self.reset_in_seconds),
        }
        if not self.allowed:
            result["retry_after"] = self.retry_after
        return result


class RateLimiter:
    """Counts calls per endpoint in fixed, reset-on-expiry windows.

    When a call arrives at least ``window_duration`` seconds after the
    current window began, a new window starts at that moment with a zero
    count. Up to ``2 * limit`` calls can therefore land within one
    ``window_duration`` across a window boundary.
    """

    def __init__(self, registry: GovernanceRegistry, clock: Callable[[], float] = time.monotonic):
        self.registry = registry
        self.clock = clock
        self.logger = get_logger("guard.rate_limiter")

    def try_admit(
        self,
        endpoint_key: str,
        limit: int,
        window_duration: float,
        now: Optional[float] = None,
    ) -> RateLimitResult:
        """Count one call against the endpoint's window if there is room."""
        if now is None:
            now = self.clock()

        window = self.registry.window(endpoint_key, limit, window_duration, now)

        with window.lock:
            window.limit = limit
            window.window_duration = window_duration

            if now - window.window_start >= window_duration:
                window.window_start = now
                window.count = 0

            reset_in = max(0.0, window.window_start + window_duration - now)

            if window.count < limit:
                window.count += 1
                return RateLimitResult(True, window.count, limit, reset_in)

            count = window.count

        self.logger.warning(
            "Rate limit exceeded",
            endpoint=endpoint_key,
            current_count=count,
            limit=limit
        )
        return RateLimitResult(False, count, limit, reset_in)

    def get_status(self, endpoint_key: str) -> Dict[str, Any]:
        """Current window state for an endpoint."""
        window = self.registry.find_window(endpoint_key)
        if window is None:
            return {"current_count": 0, "limit": None, "reset_in_seconds": None}

        now = self.clock()
        with window.lock:
            expired = now - window.window_start >= window.window_duration
            count = 0 if expired else window.count
            reset_in = 0.0 if expired else window.window_start + window.window_duration - now
            return {
                "current_count": count,
                "limit": window.limit,
                "remaining": max(0, window.limit - count),
                "reset_in_seconds": math.ceil(reset_in),
            }

    def reset(self, endpoint_key: str) -> bool:
        """Start a fresh window for an endpoint."""
        window = self.registry.find_window(endpoint_key)
        if window is None:
            return False

        with window.lock:
            window.window_start = self.clock()
            window.count = 0

        self.logger.info("Rate limit reset", endpoint=endpoint_key)
        return True
