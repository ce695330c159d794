"""
Per-endpoint governance and signature policies.

Policies are declared once at startup as explicit structures and resolved
by endpoint key. Nothing here inspects handlers.
"""

from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from shared.errors import ConfigurationError

from ..signing.models import Algorithm


class UnknownEndpointError(ConfigurationError):
    def __init__(self, endpoint_key: str):
        super().__init__(f"No policy configured for endpoint: {endpoint_key}", {"endpoint": endpoint_key})


class RateConfig(BaseModel):
    """At most ``limit`` calls per ``window_seconds``."""

    limit: int = Field(gt=0)
    window_seconds: float = Field(gt=0)


class ConcurrencyConfig(BaseModel):
    """At most ``limit`` calls in flight at once."""

    limit: int = Field(gt=0)


class EndpointPolicy(BaseModel):
    algorithm: Optional[Algorithm] = None
    required_headers: List[str] = Field(default_factory=list)
    rate: Optional[RateConfig] = None
    concurrency: Optional[ConcurrencyConfig] = None

    @field_validator("algorithm", mode="before")
    @classmethod
    def _parse_algorithm(cls, value):
        if value is None:
            return None
        return Algorithm.parse(value)

    @field_validator("required_headers")
    @classmethod
    def _lower_headers(cls, value: List[str]) -> List[str]:
        return [name.strip().lower() for name in value]


class PolicyRegistry:
    """Resolved endpoint policies keyed by endpoint identifier."""

    def __init__(self, policies: Optional[Mapping[str, EndpointPolicy]] = None):
        self._policies: Dict[str, EndpointPolicy] = {}
        for endpoint_key, policy in (policies or {}).items():
            self.register(endpoint_key, policy)

    def register(self, endpoint_key: str, policy) -> EndpointPolicy:
        if not endpoint_key:
            raise ConfigurationError("Endpoint key must not be empty")
        if endpoint_key in self._policies:
            raise ConfigurationError(
                f"Duplicate policy for endpoint: {endpoint_key}", {"endpoint": endpoint_key}
            )
        if not isinstance(policy, EndpointPolicy):
            policy = EndpointPolicy.model_validate(policy)
        self._policies[endpoint_key] = policy
        return policy

    def resolve(self, endpoint_key: str) -> EndpointPolicy:
        try:
            return self._policies[endpoint_key]
        except KeyError:
            raise UnknownEndpointError(endpoint_key) from None

    def __contains__(self, endpoint_key: str) -> bool:
        return endpoint_key in self._policies

    def keys(self):
        return self._policies.keys()
