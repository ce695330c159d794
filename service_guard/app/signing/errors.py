"""
Structural signature errors.

Every error here means the presented signature could not be evaluated at
all. A signature that is well formed but wrong is not an error: the engine
reports it as a failed verification instead.
"""

from typing import Any, Dict, Optional

from shared.errors import AuthenticationError


class SignatureError(AuthenticationError):
    """Base class for structurally invalid signatures."""

    reason = "malformed"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "SIGNATURE_ERROR"


class MalformedSignatureError(SignatureError):
    """The Authorization header could not be decoded."""

    reason = "malformed"


class UnsupportedAlgorithmError(SignatureError):
    """The named algorithm is not in the supported set."""

    reason = "unsupported_algorithm"

    def __init__(self, algorithm: str):
        super().__init__(f"Unsupported signature algorithm: {algorithm}", {"algorithm": algorithm})


class AlgorithmMismatchError(SignatureError):
    """The presented algorithm differs from the one pinned for the endpoint."""

    reason = "algorithm_mismatch"

    def __init__(self, presented: str, expected: str):
        super().__init__(
            "Signature algorithm not accepted for this endpoint",
            {"algorithm": presented, "expected": expected},
        )


class EmptyHeaderListError(SignatureError):
    """A signature must cover at least one component."""

    reason = "empty_header_list"

    def __init__(self):
        super().__init__("Signature header list is empty")


class DuplicateComponentError(SignatureError):
    reason = "duplicate_component"

    def __init__(self, name: str):
        super().__init__(f"Signature header list repeats component: {name}", {"component": name})


class MissingComponentError(SignatureError):
    """A signed header is absent from the request."""

    reason = "missing_component"

    def __init__(self, name: str):
        super().__init__(f"Request is missing signed header: {name}", {"component": name})


class InsufficientHeadersError(SignatureError):
    """The presented header list omits a component the server requires."""

    reason = "insufficient_headers"

    def __init__(self, missing):
        missing = list(missing)
        super().__init__(
            "Signature does not cover required components: " + " ".join(missing),
            {"missing": missing},
        )
        self.missing = missing
