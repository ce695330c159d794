"""
Guard Service package for the Signed Request Guard.

The guard sits in front of application handlers, enforcing:
- Authentication: HMAC signatures over selected request components
- Governance: per-endpoint fixed-window rate limits and concurrency limits

Structure:
- app.main: FastAPI app, routes, and pipeline wiring.
- app.signing: Canonical requests, signing strings, signature engine.
- app.ratelimit: Fixed-window and concurrency limiters.
- app.domain: Endpoint policies, governance gate, request pipeline.
- app.adapters: Key lookup.
"""
