"""
Starlette middleware that puts the fixed-window gate in front of the API.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.errors import RateLimitError
from shared.logging import set_client_key

from .fixed_window import FixedWindowRateLimiter

PROTECTED_PREFIX = "/api/v1/"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle requests under ``protected_prefix``; pass everything else through."""

    def __init__(self, app, rate_limiter: FixedWindowRateLimiter, protected_prefix: str = PROTECTED_PREFIX):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.protected_prefix = protected_prefix

    def is_protected(self, path: str) -> bool:
        return path.startswith(self.protected_prefix)

    async def dispatch(self, request: Request, call_next):
        if not self.is_protected(request.url.path):
            return await call_next(request)

        decision = self.rate_limiter.admit_request(request)
        set_client_key(decision.key)

        if not decision.allowed:
            error = RateLimitError(details={"limit": decision.limit, "reset_time": decision.reset_time})
            return JSONResponse(status_code=error.status_code, content=error.to_body())

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
