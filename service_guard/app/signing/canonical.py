"""
Normalized view of an HTTP request for signing.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple, Union

from starlette.requests import Request

HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _collect_headers(headers: HeaderInput) -> Mapping[str, str]:
    """Copy headers into a fresh lower-cased mapping.

    Repeated headers are joined with ", " in arrival order.
    """
    items = headers.items() if isinstance(headers, Mapping) else headers
    collected = {}
    for name, value in items:
        if isinstance(name, bytes):
            name = name.decode("latin-1")
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        key = name.strip().lower()
        value = value.strip()
        if key in collected:
            collected[key] = f"{collected[key]}, {value}"
        else:
            collected[key] = value
    return MappingProxyType(collected)


@dataclass(frozen=True)
class CanonicalRequest:
    """Immutable method, request-target and headers of a request."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "path", self.path or "/")
        object.__setattr__(self, "headers", _collect_headers(self.headers))

    @property
    def request_target(self) -> str:
        return f"{self.method.lower()} {self.path}"

    def header(self, name: str):
        """Return the value of a header, or None when absent."""
        return self.headers.get(name.lower())

    @classmethod
    def from_request(cls, request: Request) -> "CanonicalRequest":
        """Build from a Starlette request, copying everything needed.

        The path is taken as sent on the wire, percent-encoding intact.
        """
        scope = request.scope
        raw_path = scope.get("raw_path")
        if raw_path:
            path = raw_path.decode("latin-1").split("?", 1)[0]
            root_path = scope.get("root_path", "")
            if root_path and not path.startswith(root_path):
                path = root_path + path
        else:
            path = request.url.path

        query = scope.get("query_string", b"").decode("latin-1")
        if query:
            path = f"{path}?{query}"
        return cls(method=request.method, path=path, headers=list(request.headers.raw))
