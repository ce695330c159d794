"""
Signing string construction.
"""

from typing import Iterable

from .canonical import CanonicalRequest
from .errors import EmptyHeaderListError, MissingComponentError
from .models import REQUEST_TARGET


def build_signing_string(request: CanonicalRequest, headers: Iterable[str]) -> bytes:
    """Serialize the named components of a request into the bytes that get signed.

    Each component becomes a ``"<name>: <value>"`` line and lines are joined
    with ``\\n``. ``(request-target)`` expands to the lower-cased method and
    the request path. Any other name must be present on the request.
    """
    lines = []
    for raw_name in headers:
        name = raw_name.strip().lower()
        if name == REQUEST_TARGET:
            value = request.request_target
        else:
            value = request.header(name)
            if value is None:
                raise MissingComponentError(name)
        lines.append(f"{name}: {value}")

    if not lines:
        raise EmptyHeaderListError()

    return "\n".join(lines).encode("utf-8")
