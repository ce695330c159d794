"""
Rate limiting package for the Guard service.

Holds the fixed-window call counter and the concurrency limiter, both
backed by an explicitly owned GovernanceRegistry.
"""

from .concurrency import ConcurrencyLimiter, ConcurrencyResult, SlotLease
from .fixed_window import RateLimiter, RateLimitResult
from .registry import ConcurrencySlot, GovernanceRegistry, LimitWindow

__all__ = [
    "ConcurrencyLimiter",
    "ConcurrencyResult",
    "ConcurrencySlot",
    "GovernanceRegistry",
    "LimitWindow",
    "RateLimiter",
    "RateLimitResult",
    "SlotLease",
]
