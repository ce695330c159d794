"""
Per-request orchestration: authenticate, govern, execute, release.

    RECEIVED -> AUTHENTICATING -> AUTH_FAILED (401)
                               -> GOVERNING -> REJECTED (429 | 423)
                                            -> EXECUTING -> COMPLETED
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from fastapi import Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from shared.errors import AuthenticationError
from shared.logging import get_logger, set_request_context
from shared.metrics import MetricsCollector

from ..adapters.key_store import KeyStore, UnknownKeyError
from ..signing import CanonicalRequest, SignatureEngine, VerificationOutcome, VerificationResult, parse_signature
from ..signing.digest import digest_matches
from ..signing.errors import SignatureError
from .governance import GovernanceGate
from .policies import EndpointPolicy, PolicyRegistry

Handler = Callable[[], Union[Any, Awaitable[Any]]]


class PipelineState(str, Enum):
    RECEIVED = "received"
    AUTHENTICATING = "authenticating"
    AUTH_FAILED = "auth_failed"
    GOVERNING = "governing"
    REJECTED = "rejected"
    EXECUTING = "executing"
    COMPLETED = "completed"


@dataclass
class PipelineOutcome:
    """Terminal state of one request and what to send back."""

    state: PipelineState
    status_code: int
    value: Any = None
    reason: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[Exception] = None


class RequestPipeline:
    """Runs every governed request through signature checks and admission control."""

    def __init__(
        self,
        engine: SignatureEngine,
        key_store: KeyStore,
        gate: GovernanceGate,
        policies: PolicyRegistry,
        metrics: Optional[MetricsCollector] = None,
        realm: str = "guard",
        debug: bool = False,
    ):
        self.engine = engine
        self.key_store = key_store
        self.gate = gate
        self.policies = policies
        self.metrics = metrics
        self.realm = realm
        self.debug = debug
        self.logger = get_logger("guard.pipeline")

    def authenticate(
        self,
        request: CanonicalRequest,
        authorization: Optional[str],
        policy: EndpointPolicy,
        body: Optional[bytes] = None,
    ) -> VerificationResult:
        """Verify the request signature without raising on bad input."""
        try:
            signature = parse_signature(authorization or "")
        except SignatureError as e:
            return VerificationResult(VerificationOutcome.ERROR, reason=e.reason, error=e)

        set_request_context(key_id=signature.key_id)

        try:
            key = self.key_store.lookup(signature.key_id)
        except UnknownKeyError:
            return VerificationResult(
                VerificationOutcome.ERROR, reason="unknown_key", headers=signature.headers
            )

        result = self.engine.check(
            key,
            signature,
            request,
            required_headers=policy.required_headers,
            algorithm=policy.algorithm,
        )

        if result.ok and "digest" in signature.headers and body is not None:
            if not digest_matches(request.header("digest"), body):
                return VerificationResult(
                    VerificationOutcome.INVALID,
                    reason="digest_mismatch",
                    signing_string=result.signing_string,
                    headers=result.headers,
                )

        return result

    async def process(
        self,
        endpoint_key: str,
        request: CanonicalRequest,
        authorization: Optional[str],
        handler: Handler,
        body: Optional[bytes] = None,
    ) -> PipelineOutcome:
        """Run one request through the pipeline.

        Raises UnknownEndpointError for unconfigured endpoints. Errors raised
        by ``handler`` propagate after the concurrency slot is released.
        """
        policy = self.policies.resolve(endpoint_key)
        set_request_context(endpoint=endpoint_key)

        if self.metrics is not None:
            with self.metrics.time_operation("signature_verification_duration_seconds"):
                result = self.authenticate(request, authorization, policy, body)
            self.metrics.record_verification(result.outcome.value, result.reason)
        else:
            result = self.authenticate(request, authorization, policy, body)

        if not result.ok:
            self.logger.warning(
                "Signature authentication failed",
                endpoint=endpoint_key,
                outcome=result.outcome.value,
                reason=result.reason
            )
            return PipelineOutcome(
                PipelineState.AUTH_FAILED,
                401,
                reason=result.reason,
                headers=self._challenge_headers(policy, result),
                error=AuthenticationError(),
            )

        decision = self.gate.admit(endpoint_key, policy.rate, policy.concurrency)
        if not decision.admitted:
            return PipelineOutcome(
                PipelineState.REJECTED,
                decision.status_code,
                reason=decision.decision.value,
                headers=decision.headers(),
                error=decision.error(),
            )

        async with decision:
            value = handler()
            if inspect.isawaitable(value):
                value = await value

        return PipelineOutcome(
            PipelineState.COMPLETED,
            200,
            value=value,
            headers=decision.headers(),
        )

    async def dispatch(self, request: Request, endpoint_key: str, handler: Handler) -> Response:
        """Run a Starlette request through the pipeline and build the response."""
        body = await request.body()
        outcome = await self.process(
            endpoint_key,
            CanonicalRequest.from_request(request),
            request.headers.get("authorization"),
            handler,
            body=body,
        )
        return self.to_response(outcome)

    def to_response(self, outcome: PipelineOutcome) -> Response:
        if outcome.state is not PipelineState.COMPLETED:
            return JSONResponse(
                status_code=outcome.status_code,
                content=outcome.error.to_response().model_dump(),
                headers=outcome.headers,
            )

        value = outcome.value
        if isinstance(value, Response):
            response = value
        elif isinstance(value, str):
            response = PlainTextResponse(value)
        elif isinstance(value, bytes):
            response = Response(content=value, media_type="application/octet-stream")
        else:
            response = JSONResponse(content=value)

        for name, header_value in outcome.headers.items():
            response.headers[name] = header_value
        return response

    def _challenge_headers(self, policy: EndpointPolicy, result: VerificationResult) -> Dict[str, str]:
        required = self.engine.required_headers + tuple(
            name for name in policy.required_headers if name not in self.engine.required_headers
        )
        headers = {
            "WWW-Authenticate": f'Signature realm="{self.realm}",headers="{" ".join(required)}"'
        }
        if self.debug and result.signing_string is not None:
            headers["X-Signing-String"] = result.signing_string.decode("ascii", "backslashreplace").replace("\n", "\\n")
        if self.debug and result.headers:
            headers["X-Signature-Headers"] = " ".join(result.headers)
        return headers
