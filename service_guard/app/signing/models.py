"""
Signature data model.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

from .errors import (
    DuplicateComponentError,
    EmptyHeaderListError,
    UnsupportedAlgorithmError,
)

REQUEST_TARGET = "(request-target)"


class Algorithm(str, Enum):
    """Supported keyed digest algorithms."""

    HMAC_SHA1 = "hmac-sha1"
    HMAC_SHA256 = "hmac-sha256"
    HMAC_SHA384 = "hmac-sha384"
    HMAC_SHA512 = "hmac-sha512"

    @property
    def digestmod(self):
        return _DIGESTS[self]

    @classmethod
    def parse(cls, value: Union[str, "Algorithm"]) -> "Algorithm":
        """Resolve an algorithm name, case-insensitively."""
        if isinstance(value, Algorithm):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedAlgorithmError(str(value)) from None


_DIGESTS = {
    Algorithm.HMAC_SHA1: hashlib.sha1,
    Algorithm.HMAC_SHA256: hashlib.sha256,
    Algorithm.HMAC_SHA384: hashlib.sha384,
    Algorithm.HMAC_SHA512: hashlib.sha512,
}


def normalize_header_list(headers: Iterable[str]) -> Tuple[str, ...]:
    """Lower-case component names, rejecting empty and duplicate lists."""
    names = tuple(str(name).strip().lower() for name in headers)
    if not names:
        raise EmptyHeaderListError()
    seen = set()
    for name in names:
        if name in seen:
            raise DuplicateComponentError(name)
        seen.add(name)
    return names


@dataclass(frozen=True)
class SignatureSpec:
    """What the signer intends to sign and with which key."""

    key_id: str
    algorithm: Algorithm
    headers: Tuple[str, ...] = (REQUEST_TARGET,)
    created_at: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "algorithm", Algorithm.parse(self.algorithm))
        object.__setattr__(self, "headers", normalize_header_list(self.headers))


@dataclass(frozen=True)
class Signature:
    """A signature as transmitted in the Authorization header."""

    key_id: str
    algorithm: Algorithm
    headers: Tuple[str, ...]
    signature: bytes = field(repr=False)
    created_at: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "algorithm", Algorithm.parse(self.algorithm))
        object.__setattr__(self, "headers", normalize_header_list(self.headers))
