"""
Guard service: signed, rate- and concurrency-governed endpoints.
"""

import asyncio
import time
from typing import Callable, Dict, Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import ConfigurationError

from .adapters import InMemoryKeyStore, KeyStore
from .domain import (
    ConcurrencyConfig,
    EndpointPolicy,
    GovernanceGate,
    PolicyRegistry,
    RateConfig,
    RequestPipeline,
)
from .ratelimit import ConcurrencyLimiter, GovernanceRegistry, RateLimiter
from .signing import SignatureEngine


def default_policies() -> Dict[str, EndpointPolicy]:
    """Policies for the built-in endpoints."""
    return {
        "preferred": EndpointPolicy(rate=RateConfig(limit=10, window_seconds=10)),
        "preferredPost": EndpointPolicy(concurrency=ConcurrencyConfig(limit=2)),
    }


class GuardService(BaseService):
    """Guard service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        key_store: Optional[KeyStore] = None,
        policies: Optional[Dict[str, EndpointPolicy]] = None,
        clock: Callable[[], float] = time.monotonic,
        echo_delay_seconds: float = 0.5,
    ):
        super().__init__("guard", 8000, config=config)
        self.echo_delay_seconds = echo_delay_seconds

        if key_store is None:
            if not self.config.signing_keys:
                raise ConfigurationError("No signing keys configured (set ACCESS_SIGNING_KEYS)")
            key_store = InMemoryKeyStore(self.config.signing_keys)
        self.key_store = key_store

        self.policies = PolicyRegistry(default_policies() if policies is None else policies)
        self.registry = GovernanceRegistry()
        self.rate_limiter = RateLimiter(self.registry, clock=clock)
        self.concurrency_limiter = ConcurrencyLimiter(self.registry, on_change=self._record_in_flight)
        self.gate = GovernanceGate(self.rate_limiter, self.concurrency_limiter, metrics=self.metrics)
        self.engine = SignatureEngine(self.config.required_signature_headers)
        self.pipeline = RequestPipeline(
            self.engine,
            self.key_store,
            self.gate,
            self.policies,
            metrics=self.metrics,
            realm=self.config.signature_realm,
            debug=self.config.signature_debug,
        )

        if self.config.signature_debug:
            self.logger.warning("Signature debug headers enabled")

        self._setup_guard_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.guard_service = self

    def _record_in_flight(self, endpoint_key: str, in_flight: int) -> None:
        self.metrics.set_gauge("in_flight_requests", in_flight, endpoint=endpoint_key)

    def _setup_guard_routes(self):
        """Set up guard routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "guard",
                "message": "Signed Request Guard",
                "version": "1.0.0"
            }

        @self.app.get("/api/v1/status")
        async def api_status():
            """Governance state per endpoint."""
            return {
                "status": "operational",
                "version": "1.0.0",
                "endpoints": sorted(self.policies.keys()),
                "governance": self.registry.snapshot(),
            }

        @self.app.get("/api/preferred")
        async def preferred(request: Request):
            """Rate limited endpoint."""
            return await self.pipeline.dispatch(request, "preferred", lambda: "orange")

        @self.app.post("/api/preferred")
        async def preferred_post(request: Request):
            """Concurrency limited echo endpoint."""
            body = await request.body()

            async def echo():
                await asyncio.sleep(self.echo_delay_seconds)
                return body.decode("utf-8", errors="replace")

            return await self.pipeline.dispatch(request, "preferredPost", echo)


def create_app():
    """Create FastAPI application."""
    service = GuardService()
    return service.app


if __name__ == "__main__":
    service = GuardService()
    service.run()
