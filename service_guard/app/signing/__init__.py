"""
HTTP message signing for the Guard service.

Builds deterministic signing strings from requests and produces/validates
HMAC signatures carried in the ``Authorization: Signature ...`` header.
"""

from .canonical import CanonicalRequest
from .client import RequestSigner
from .engine import SignatureEngine, VerificationOutcome, VerificationResult
from .header_codec import format_signature, parse_signature
from .models import REQUEST_TARGET, Algorithm, Signature, SignatureSpec
from .signing_string import build_signing_string

__all__ = [
    "REQUEST_TARGET",
    "Algorithm",
    "CanonicalRequest",
    "RequestSigner",
    "Signature",
    "SignatureEngine",
    "SignatureSpec",
    "VerificationOutcome",
    "VerificationResult",
    "build_signing_string",
    "format_signature",
    "parse_signature",
]
