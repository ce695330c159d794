"""
Domain utilities for the Guard Service.

Endpoint policies, the governance gate that combines rate and concurrency
limits, and the request pipeline that ties signature checks to admission.
"""

from .governance import Decision, GovernanceDecision, GovernanceGate
from .pipeline import PipelineOutcome, PipelineState, RequestPipeline
from .policies import ConcurrencyConfig, EndpointPolicy, PolicyRegistry, RateConfig, UnknownEndpointError

__all__ = [
    "ConcurrencyConfig",
    "Decision",
    "EndpointPolicy",
    "GovernanceDecision",
    "GovernanceGate",
    "PipelineOutcome",
    "PipelineState",
    "PolicyRegistry",
    "RateConfig",
    "RequestPipeline",
    "UnknownEndpointError",
]
