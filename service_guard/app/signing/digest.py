"""
Body digests for the ``Digest`` request header (RFC 3230 style).

Signing the ``digest`` header binds the signature to the request body.
"""

import base64
import hashlib
import hmac
from typing import Optional

_ALGORITHMS = {
    "sha-256": hashlib.sha256,
    "sha-512": hashlib.sha512,
}


def compute_digest(body: bytes, algorithm: str = "SHA-256") -> str:
    """Return a Digest header value such as ``SHA-256=<base64>``."""
    hasher = _ALGORITHMS.get(algorithm.lower())
    if hasher is None:
        raise ValueError(f"Unsupported digest algorithm: {algorithm}")
    encoded = base64.b64encode(hasher(body).digest()).decode("ascii")
    return f"{algorithm.upper()}={encoded}"


def digest_matches(header_value: Optional[str], body: bytes) -> bool:
    """Check a Digest header against a body.

    Every recognized ``alg=value`` entry must match; at least one must be
    recognized.
    """
    if not header_value:
        return False

    checked = 0
    for entry in header_value.split(","):
        algorithm, sep, value = entry.strip().partition("=")
        hasher = _ALGORITHMS.get(algorithm.lower())
        if not sep or hasher is None:
            continue
        expected = base64.b64encode(hasher(body).digest()).decode("ascii")
        if not hmac.compare_digest(expected, value.strip()):
            return False
        checked += 1

    return checked > 0
