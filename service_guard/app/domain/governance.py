"""
Admission control combining rate and concurrency limits.
"""

from enum import Enum
from typing import Any, Dict, Optional

from shared.errors import AccessLayerException, ConcurrencyLimitError, RateLimitError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..ratelimit import ConcurrencyLimiter, RateLimiter, RateLimitResult, SlotLease
from .policies import ConcurrencyConfig, RateConfig


class Decision(str, Enum):
    ADMIT = "admit"
    RATE_EXCEEDED = "rate_exceeded"
    CONCURRENCY_EXCEEDED = "concurrency_exceeded"


DECISION_STATUS = {
    Decision.ADMIT: 200,
    Decision.RATE_EXCEEDED: 429,
    Decision.CONCURRENCY_EXCEEDED: 423,
}


class GovernanceDecision:
    """Admission outcome plus the handle that gives back the concurrency slot."""

    def __init__(
        self,
        endpoint_key: str,
        decision: Decision,
        rate_result: Optional[RateLimitResult] = None,
        lease: Optional[SlotLease] = None,
    ):
        self.endpoint_key = endpoint_key
        self.decision = decision
        self.rate_result = rate_result
        self._lease = lease

    @property
    def admitted(self) -> bool:
        return self.decision is Decision.ADMIT

    @property
    def status_code(self) -> int:
        return DECISION_STATUS[self.decision]

    def release(self) -> None:
        """Release the concurrency slot, if one was taken. Safe to call twice."""
        if self._lease is not None:
            self._lease.release()

    def error(self) -> Optional[AccessLayerException]:
        """The rejection as an exception object, or None when admitted."""
        details: Dict[str, Any] = {"endpoint": self.endpoint_key}
        if self.decision is Decision.RATE_EXCEEDED:
            if self.rate_result is not None:
                details.update(self.rate_result.to_dict())
            return RateLimitError(details=details)
        if self.decision is Decision.CONCURRENCY_EXCEEDED:
            return ConcurrencyLimitError(details=details)
        return None

    def raise_for_status(self) -> None:
        error = self.error()
        if error is not None:
            raise error

    def headers(self) -> Dict[str, str]:
        """X-RateLimit-* response headers for this decision."""
        if self.rate_result is None:
            return {}
        headers = {
            "X-RateLimit-Limit": str(self.rate_result.limit),
            "X-RateLimit-Remaining": str(self.rate_result.remaining),
            "X-RateLimit-Reset": str(self.rate_result.retry_after),
        }
        if self.decision is Decision.RATE_EXCEEDED:
            headers["Retry-After"] = str(self.rate_result.retry_after)
        return headers

    def __enter__(self) -> "GovernanceDecision":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    async def __aenter__(self) -> "GovernanceDecision":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"GovernanceDecision({self.endpoint_key!r}, {self.decision.value})"


class GovernanceGate:
    """Rate check first, then concurrency.

    A rate rejection never takes a concurrency slot. A concurrency rejection
    keeps the rate count: the rate limiter counts attempts, the concurrency
    limiter counts executions.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        concurrency_limiter: ConcurrencyLimiter,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.rate_limiter = rate_limiter
        self.concurrency_limiter = concurrency_limiter
        self.metrics = metrics
        self.logger = get_logger("guard.governance")

    def admit(
        self,
        endpoint_key: str,
        rate: Optional[RateConfig] = None,
        concurrency: Optional[ConcurrencyConfig] = None,
    ) -> GovernanceDecision:
        rate_result = None
        if rate is not None:
            rate_result = self.rate_limiter.try_admit(endpoint_key, rate.limit, rate.window_seconds)
            if not rate_result.allowed:
                return self._decide(endpoint_key, Decision.RATE_EXCEEDED, rate_result)

        lease = None
        if concurrency is not None:
            result = self.concurrency_limiter.try_acquire(endpoint_key, concurrency.limit)
            if not result.acquired:
                return self._decide(endpoint_key, Decision.CONCURRENCY_EXCEEDED, rate_result)
            lease = result.lease

        return self._decide(endpoint_key, Decision.ADMIT, rate_result, lease)

    def _decide(self, endpoint_key, decision, rate_result=None, lease=None) -> GovernanceDecision:
        if self.metrics is not None:
            self.metrics.record_governance_decision(endpoint_key, decision.value)
        if decision is Decision.ADMIT:
            self.logger.debug("Request admitted", endpoint=endpoint_key)
        else:
            self.logger.warning("Request rejected", endpoint=endpoint_key, decision=decision.value)
        return GovernanceDecision(endpoint_key, decision, rate_result, lease)
