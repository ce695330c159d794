"""
Adapters package for the Guard Service.

Wraps collaborators that live outside the service, such as the keystore
that maps signature keyIds to shared secrets.
"""

from .key_store import InMemoryKeyStore, KeyStore, UnknownKeyError

__all__ = [
    "InMemoryKeyStore",
    "KeyStore",
    "UnknownKeyError",
]
