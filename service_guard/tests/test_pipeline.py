"""
Unit tests for RequestPipeline.
"""

import asyncio
import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_guard.app.adapters import InMemoryKeyStore
from service_guard.app.domain import (
    ConcurrencyConfig,
    EndpointPolicy,
    GovernanceGate,
    PipelineState,
    PolicyRegistry,
    RateConfig,
    RequestPipeline,
    UnknownEndpointError,
)
from service_guard.app.ratelimit import ConcurrencyLimiter, GovernanceRegistry, RateLimiter
from service_guard.app.signing import CanonicalRequest, RequestSigner
from service_guard.app.signing.digest import compute_digest

DATE = "Tue, 07 Jun 2014 20:51:35 GMT"


class TestRequestPipeline:
    """Test cases for RequestPipeline."""

    @pytest.fixture
    def registry(self):
        """Create an isolated registry."""
        return GovernanceRegistry()

    @pytest.fixture
    def policies(self):
        """Endpoint policies under test."""
        return PolicyRegistry({
            "rated": EndpointPolicy(rate=RateConfig(limit=2, window_seconds=60)),
            "single": EndpointPolicy(concurrency=ConcurrencyConfig(limit=1)),
            "dated": EndpointPolicy(algorithm="hmac-sha512", required_headers=["date"]),
            "open": EndpointPolicy(),
        })

    @pytest.fixture
    def metrics(self):
        """Mock metrics collector."""
        return MagicMock()

    @pytest.fixture
    def pipeline(self, registry, policies, metrics):
        """Create RequestPipeline instance."""
        from service_guard.app.signing import SignatureEngine

        gate = GovernanceGate(RateLimiter(registry), ConcurrencyLimiter(registry))
        return RequestPipeline(
            SignatureEngine(),
            InMemoryKeyStore({"client-1": "secret"}),
            gate,
            policies,
            metrics=metrics,
            realm="test",
        )

    @pytest.fixture
    def signer(self):
        """Create a client signer."""
        return RequestSigner("client-1", "secret")

    def _signed(self, signer, method="GET", path="/resource", body=None, headers=None):
        headers = signer.sign(method, path, headers or {"Date": DATE}, body=body)
        return CanonicalRequest(method, path, headers), headers["Authorization"]

    @pytest.mark.asyncio
    async def test_completed(self, pipeline, signer, metrics):
        """A valid, admitted request runs the handler."""
        request, authorization = self._signed(signer)

        outcome = await pipeline.process("open", request, authorization, lambda: "orange")

        assert outcome.state is PipelineState.COMPLETED
        assert outcome.status_code == 200
        assert outcome.value == "orange"
        metrics.record_verification.assert_called_once_with("valid", "ok")

    @pytest.mark.asyncio
    async def test_async_handler(self, pipeline, signer):
        """Coroutine handlers are awaited."""
        request, authorization = self._signed(signer)

        async def handler():
            await asyncio.sleep(0)
            return {"color": "orange"}

        outcome = await pipeline.process("open", request, authorization, handler)

        assert outcome.value == {"color": "orange"}

    @pytest.mark.asyncio
    async def test_missing_authorization(self, pipeline):
        """Requests without a signature fail authentication."""
        called = []
        request = CanonicalRequest("GET", "/resource", {"Date": DATE})

        outcome = await pipeline.process("open", request, None, lambda: called.append(1))

        assert outcome.state is PipelineState.AUTH_FAILED
        assert outcome.status_code == 401
        assert outcome.reason == "malformed"
        assert outcome.headers["WWW-Authenticate"] == 'Signature realm="test",headers="(request-target)"'
        assert called == []

    @pytest.mark.asyncio
    async def test_forged_and_malformed_look_the_same(self, pipeline, signer):
        """Different failure reasons produce the same response."""
        request, authorization = self._signed(signer)
        forged = authorization[:-6] + "AAAA=\""
        other_path = CanonicalRequest("GET", "/other", dict(request.headers))

        forged_outcome = await pipeline.process("open", request, forged, lambda: None)
        moved_outcome = await pipeline.process("open", other_path, authorization, lambda: None)
        malformed_outcome = await pipeline.process("open", request, "Signature nonsense", lambda: None)

        assert moved_outcome.reason == "digest_mismatch"
        assert malformed_outcome.reason == "malformed"

        responses = [
            pipeline.to_response(outcome)
            for outcome in (forged_outcome, moved_outcome, malformed_outcome)
        ]
        assert {response.status_code for response in responses} == {401}
        assert len({response.body for response in responses}) == 1
        assert all("X-Signing-String" not in response.headers for response in responses)

    @pytest.mark.asyncio
    async def test_unknown_key(self, pipeline):
        """Signatures from unknown keys fail authentication."""
        signer = RequestSigner("stranger", "secret")
        request, authorization = self._signed(signer)

        outcome = await pipeline.process("open", request, authorization, lambda: None)

        assert outcome.state is PipelineState.AUTH_FAILED
        assert outcome.reason == "unknown_key"

    @pytest.mark.asyncio
    async def test_endpoint_policy_applies(self, pipeline):
        """Endpoint algorithm and required headers are enforced."""
        weak = RequestSigner("client-1", "secret", "hmac-sha256")
        strong = RequestSigner("client-1", "secret", "hmac-sha512")
        undated = RequestSigner("client-1", "secret", "hmac-sha512", headers=["(request-target)"])

        outcome = await pipeline.process("dated", *self._signed(weak), lambda: "ok")
        assert outcome.reason == "algorithm_mismatch"

        outcome = await pipeline.process("dated", *self._signed(undated), lambda: "ok")
        assert outcome.reason == "insufficient_headers"
        assert outcome.headers["WWW-Authenticate"] == 'Signature realm="test",headers="(request-target) date"'

        outcome = await pipeline.process("dated", *self._signed(strong), lambda: "ok")
        assert outcome.state is PipelineState.COMPLETED

    @pytest.mark.asyncio
    async def test_body_digest(self, pipeline):
        """A signed Digest header must match the body."""
        signer = RequestSigner("client-1", "secret", headers=["(request-target)", "digest"])
        request, authorization = self._signed(signer, "POST", body=b"hello", headers={"Date": DATE})

        ok = await pipeline.process("open", request, authorization, lambda: "ok", body=b"hello")
        tampered = await pipeline.process("open", request, authorization, lambda: "ok", body=b"HELLO")

        assert request.header("digest") == compute_digest(b"hello")
        assert ok.state is PipelineState.COMPLETED
        assert tampered.state is PipelineState.AUTH_FAILED
        assert tampered.reason == "digest_mismatch"

    @pytest.mark.asyncio
    async def test_rate_rejection(self, pipeline, signer):
        """Calls over the rate limit are rejected with 429."""
        request, authorization = self._signed(signer)

        statuses = []
        for _ in range(3):
            outcome = await pipeline.process("rated", request, authorization, lambda: "ok")
            statuses.append(outcome.status_code)

        assert statuses == [200, 200, 429]
        assert outcome.state is PipelineState.REJECTED
        assert outcome.headers["X-RateLimit-Remaining"] == "0"

    @pytest.mark.asyncio
    async def test_failed_authentication_is_not_counted(self, pipeline, registry):
        """Requests failing authentication never reach governance."""
        request = CanonicalRequest("GET", "/resource", {"Date": DATE})

        await pipeline.process("rated", request, "Signature bogus", lambda: "ok")

        assert registry.find_window("rated") is None

    @pytest.mark.asyncio
    async def test_release_on_handler_error(self, pipeline, signer, registry):
        """The concurrency slot is released when the handler raises."""
        request, authorization = self._signed(signer)

        def handler():
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError):
            await pipeline.process("single", request, authorization, handler)

        assert registry.find_slot("single").in_flight == 0

    @pytest.mark.asyncio
    async def test_release_on_cancellation(self, pipeline, signer, registry):
        """The concurrency slot is released when the handler is cancelled."""
        request, authorization = self._signed(signer)
        started = asyncio.Event()

        async def handler():
            started.set()
            await asyncio.sleep(60)

        task = asyncio.create_task(pipeline.process("single", request, authorization, handler))
        await started.wait()
        assert registry.find_slot("single").in_flight == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert registry.find_slot("single").in_flight == 0

    @pytest.mark.asyncio
    async def test_concurrency_rejection(self, pipeline, signer):
        """A second simultaneous call is rejected with 423."""
        request, authorization = self._signed(signer)
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return "done"

        first = asyncio.create_task(pipeline.process("single", request, authorization, slow))
        await asyncio.sleep(0)
        second = await pipeline.process("single", request, authorization, slow)
        release.set()

        assert second.state is PipelineState.REJECTED
        assert second.status_code == 423
        assert (await first).value == "done"

    @pytest.mark.asyncio
    async def test_unknown_endpoint(self, pipeline, signer):
        """Unconfigured endpoints are configuration errors."""
        request, authorization = self._signed(signer)

        with pytest.raises(UnknownEndpointError):
            await pipeline.process("nowhere", request, authorization, lambda: None)

    @pytest.mark.asyncio
    async def test_debug_headers(self, registry, policies, signer):
        """Debug mode exposes the computed signing string on failure."""
        from service_guard.app.signing import SignatureEngine

        pipeline = RequestPipeline(
            SignatureEngine(),
            InMemoryKeyStore({"client-1": "other secret"}),
            GovernanceGate(RateLimiter(registry), ConcurrencyLimiter(registry)),
            policies,
            debug=True,
        )
        request, authorization = self._signed(signer)

        outcome = await pipeline.process("open", request, authorization, lambda: None)

        assert outcome.headers["X-Signing-String"] == f"(request-target): get /resource\\ndate: {DATE}"
        assert outcome.headers["X-Signature-Headers"] == "(request-target) date"

    @pytest.mark.asyncio
    async def test_debug_header_is_ascii(self, registry, policies):
        """Non-ASCII signing strings are escaped in the debug header."""
        from service_guard.app.signing import SignatureEngine

        pipeline = RequestPipeline(
            SignatureEngine(),
            InMemoryKeyStore({"client-1": "other secret"}),
            GovernanceGate(RateLimiter(registry), ConcurrencyLimiter(registry)),
            policies,
            debug=True,
        )
        signer = RequestSigner("client-1", "secret", headers=["(request-target)"])
        request, authorization = self._signed(signer, path="/cafē")

        outcome = await pipeline.process("open", request, authorization, lambda: None)

        value = outcome.headers["X-Signing-String"]
        assert value == "(request-target): get /caf\\xc4\\x93"
        value.encode("latin-1")
