"""
Shared-secret lookup for signature verification.

The real keystore lives outside this service; this adapter only answers
``keyId -> secret bytes``.
"""

from typing import Dict, Mapping, Union

from shared.errors import ConfigurationError
from shared.logging import get_logger


class UnknownKeyError(ConfigurationError):
    """No secret is known for the requested keyId."""

    def __init__(self, key_id: str):
        super().__init__("Unknown signing key", {"key_id": key_id})
        self.key_id = key_id


class KeyStore:
    """Interface for shared-secret lookup."""

    def lookup(self, key_id: str) -> bytes:
        raise NotImplementedError


class InMemoryKeyStore(KeyStore):
    """Secrets held in process memory, loaded once at startup."""

    def __init__(self, keys: Mapping[str, Union[str, bytes]]):
        self.logger = get_logger("guard.key_store")
        self._keys: Dict[str, bytes] = {}
        for key_id, secret in keys.items():
            if isinstance(secret, str):
                secret = secret.encode("utf-8")
            if not key_id or not secret:
                raise ConfigurationError("Signing keys must have a keyId and a non-empty secret",
                                         {"key_id": key_id})
            self._keys[key_id] = secret

        self.logger.info("Key store loaded", key_count=len(self._keys))

    def lookup(self, key_id: str) -> bytes:
        try:
            return self._keys[key_id]
        except KeyError:
            raise UnknownKeyError(key_id) from None

    def __contains__(self, key_id: str) -> bool:
        return key_id in self._keys
