"""
Authorization header encoding for signatures.

Wire format::

    Signature keyId="client-1",algorithm="hmac-sha256",headers="(request-target) date",signature="base64..."
"""

import base64
import binascii
import re
from typing import Dict

from .errors import MalformedSignatureError
from .models import Signature

SCHEME = "Signature"

_PARAM_RE = re.compile(r'\s*([A-Za-z]+)\s*=\s*(?:"([^"]*)"|([^",\s]+))\s*(?:,|$)')


def format_signature(signature: Signature) -> str:
    """Render a signature as an Authorization header value."""
    params = [
        f'keyId="{signature.key_id}"',
        f'algorithm="{signature.algorithm.value}"',
    ]
    if signature.created_at is not None:
        params.append(f"created={int(signature.created_at)}")
    params.append(f'headers="{" ".join(signature.headers)}"')
    params.append(f'signature="{base64.b64encode(signature.signature).decode("ascii")}"')
    return f"{SCHEME} {','.join(params)}"


def _parse_params(value: str) -> Dict[str, str]:
    params: Dict[str, str] = {}
    pos = 0
    while pos < len(value):
        match = _PARAM_RE.match(value, pos)
        if not match or match.end() == pos:
            raise MalformedSignatureError("Unparseable signature parameters")
        name = match.group(1)
        if name in params:
            raise MalformedSignatureError(f"Repeated signature parameter: {name}")
        params[name] = match.group(2) if match.group(2) is not None else match.group(3)
        pos = match.end()
    return params


def parse_signature(header_value: str) -> Signature:
    """Decode an Authorization header value into a Signature.

    The ``Signature`` scheme prefix is optional. Raises MalformedSignatureError
    for anything that cannot be decoded; an unknown algorithm raises
    UnsupportedAlgorithmError.
    """
    if not header_value or not header_value.strip():
        raise MalformedSignatureError("Missing signature")

    value = header_value.strip()
    scheme, _, rest = value.partition(" ")
    if scheme.lower() == SCHEME.lower():
        value = rest.strip()

    params = _parse_params(value)

    for required in ("keyId", "algorithm", "signature"):
        if not params.get(required):
            raise MalformedSignatureError(f"Signature parameter missing: {required}")

    try:
        digest = base64.b64decode(params["signature"], validate=True)
    except (binascii.Error, ValueError):
        raise MalformedSignatureError("Signature is not valid base64") from None

    created_at = None
    if "created" in params:
        try:
            created_at = int(params["created"])
        except ValueError:
            raise MalformedSignatureError("Signature created parameter is not an integer") from None

    # Absent headers parameter defaults to the request target only
    headers = params.get("headers", "(request-target)").split()

    return Signature(
        key_id=params["keyId"],
        algorithm=params["algorithm"],
        headers=tuple(headers),
        signature=digest,
        created_at=created_at,
    )
