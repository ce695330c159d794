"""
Client-side request signing.
"""

from email.utils import formatdate
from typing import Dict, Iterable, Mapping, Optional, Union

from .canonical import CanonicalRequest
from .digest import compute_digest
from .engine import SignatureEngine
from .header_codec import format_signature
from .models import REQUEST_TARGET, Algorithm, SignatureSpec


class RequestSigner:
    """Adds Date, Digest and Authorization headers to outgoing requests."""

    def __init__(
        self,
        key_id: str,
        secret: Union[str, bytes],
        algorithm: Union[str, Algorithm] = Algorithm.HMAC_SHA256,
        headers: Iterable[str] = (REQUEST_TARGET, "date"),
    ):
        self.key_id = key_id
        self.secret = secret.encode("utf-8") if isinstance(secret, str) else secret
        self.algorithm = Algorithm.parse(algorithm)
        self.headers = tuple(headers)
        self.engine = SignatureEngine()

    def sign(
        self,
        method: str,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
        created_at: Optional[int] = None,
    ) -> Dict[str, str]:
        """Return ``headers`` plus everything needed to authenticate the request."""
        signed = dict(headers or {})
        present = {name.lower() for name in signed}

        if "date" in self.headers and "date" not in present:
            signed["Date"] = formatdate(usegmt=True)
        if "digest" in self.headers and "digest" not in present:
            signed["Digest"] = compute_digest(body or b"")

        spec = SignatureSpec(self.key_id, self.algorithm, self.headers, created_at)
        signature = self.engine.sign(self.secret, spec, CanonicalRequest(method, path, signed))
        signed["Authorization"] = format_signature(signature)
        return signed
