"""
Shared configuration management for the Signed Request Guard.
"""

from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Signature authentication
    signature_realm: str = Field(default="guard")
    signature_debug: bool = Field(default=False)
    required_signature_headers: List[str] = Field(default_factory=lambda: ["(request-target)"])

    # Shared secrets keyed by keyId. Supplied as a JSON object, e.g.
    # ACCESS_SIGNING_KEYS='{"client-1": "s3cret"}'
    signing_keys: Dict[str, str] = Field(default_factory=dict)

    # Observability
    enable_metrics: bool = Field(default=True)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
