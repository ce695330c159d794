"""
HMAC signing and verification of HTTP requests.
"""

import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

from shared.logging import get_logger

from .canonical import CanonicalRequest
from .errors import AlgorithmMismatchError, InsufficientHeadersError, SignatureError
from .models import REQUEST_TARGET, Algorithm, Signature, SignatureSpec
from .signing_string import build_signing_string


class VerificationOutcome(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    ERROR = "error"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking a signature.

    ``reason`` is for logs and metrics only and must not reach the client.
    """

    outcome: VerificationOutcome
    reason: str = "ok"
    signing_string: Optional[bytes] = None
    error: Optional[SignatureError] = None
    headers: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.outcome is VerificationOutcome.VALID


class SignatureEngine:
    """Computes and verifies keyed digests over request signing strings.

    ``required_headers`` is the server-side minimum every presented
    signature must cover; ``(request-target)`` is always part of it.
    """

    def __init__(self, required_headers: Iterable[str] = (REQUEST_TARGET,)):
        self.required_headers = self._merge_required(required_headers)
        self.logger = get_logger("guard.signature_engine")

    @staticmethod
    def _merge_required(headers: Optional[Iterable[str]]) -> Tuple[str, ...]:
        merged = [REQUEST_TARGET]
        for name in headers or ():
            name = name.strip().lower()
            if name not in merged:
                merged.append(name)
        return tuple(merged)

    @staticmethod
    def compute(key: bytes, algorithm: Union[str, Algorithm], signing_string: bytes) -> bytes:
        """Keyed digest of a signing string."""
        algorithm = Algorithm.parse(algorithm)
        return hmac.new(key, signing_string, algorithm.digestmod).digest()

    def sign(self, key: bytes, spec: SignatureSpec, request: CanonicalRequest) -> Signature:
        """Sign a request according to ``spec``."""
        signing_string = build_signing_string(request, spec.headers)
        return Signature(
            key_id=spec.key_id,
            algorithm=spec.algorithm,
            headers=spec.headers,
            signature=self.compute(key, spec.algorithm, signing_string),
            created_at=spec.created_at,
        )

    def check_policy(
        self,
        signature: Signature,
        required_headers: Optional[Iterable[str]] = None,
        algorithm: Optional[Union[str, Algorithm]] = None,
    ) -> None:
        """Raise if the presented signature does not satisfy server policy."""
        required = self.required_headers
        if required_headers is not None:
            required = self._merge_required(list(required) + list(required_headers))

        missing = [name for name in required if name not in signature.headers]
        if missing:
            raise InsufficientHeadersError(missing)

        if algorithm is not None:
            expected = Algorithm.parse(algorithm)
            if signature.algorithm is not expected:
                raise AlgorithmMismatchError(signature.algorithm.value, expected.value)

    def verify(
        self,
        key: bytes,
        signature: Signature,
        request: CanonicalRequest,
        required_headers: Optional[Iterable[str]] = None,
        algorithm: Optional[Union[str, Algorithm]] = None,
    ) -> bool:
        """Verify a signature against a request.

        The signing string is rebuilt from the header list exactly as
        presented. Returns False for a wrong digest; raises SignatureError
        subclasses for signatures that cannot be evaluated.
        """
        self.check_policy(signature, required_headers, algorithm)
        signing_string = build_signing_string(request, signature.headers)
        expected = self.compute(key, signature.algorithm, signing_string)
        return hmac.compare_digest(expected, signature.signature)

    def check(
        self,
        key: bytes,
        signature: Signature,
        request: CanonicalRequest,
        required_headers: Optional[Iterable[str]] = None,
        algorithm: Optional[Union[str, Algorithm]] = None,
    ) -> VerificationResult:
        """Like verify, but reports structural errors as a result instead of raising."""
        signing_string = None
        try:
            self.check_policy(signature, required_headers, algorithm)
            signing_string = build_signing_string(request, signature.headers)
        except SignatureError as e:
            return VerificationResult(
                VerificationOutcome.ERROR, reason=e.reason, error=e, headers=signature.headers
            )

        expected = self.compute(key, signature.algorithm, signing_string)
        if hmac.compare_digest(expected, signature.signature):
            return VerificationResult(
                VerificationOutcome.VALID, signing_string=signing_string, headers=signature.headers
            )

        self.logger.debug("Signature digest mismatch", key_id=signature.key_id)
        return VerificationResult(
            VerificationOutcome.INVALID,
            reason="digest_mismatch",
            signing_string=signing_string,
            headers=signature.headers,
        )
