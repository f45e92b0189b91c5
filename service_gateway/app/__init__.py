"""
API Gateway Service package for the TreeShop access layer.

The gateway fronts the versioned business API, enforcing:
- Rate limiting: per-client fixed-window quotas on /api/v1/
- Request correlation, structured logging and Prometheus metrics

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.ratelimit: Fixed-window limiter, quota store, sweeper and middleware.
"""
