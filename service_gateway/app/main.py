"""
API Gateway service for the TreeShop access layer.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from service_gateway.app.ratelimit import (
    FixedWindowRateLimiter,
    InMemoryQuotaStore,
    QuotaSweeper,
    RateLimitMiddleware,
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

PARCEL_ENDPOINTS = [
    "GET /api/v1/parcels/search?app_token=<token>&lat=<lat>&lon=<lon>&radius=<radius>&limit=<limit>",
    "GET /api/v1/parcels/apn?app_token=<token>&apn=<apn>&limit=<limit>",
    "GET /api/v1/parcels/address?app_token=<token>&address=<address>&limit=<limit>",
    "POST /api/v1/parcels/area (body: {app_token, geojson, limit})",
]


class GatewayService(BaseService):
    """API Gateway service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, rate_limiter: Optional[FixedWindowRateLimiter] = None):
        self._injected_rate_limiter = rate_limiter
        super().__init__("gateway", 8000, config=config)

        self.sweeper = QuotaSweeper(
            self.rate_limiter,
            interval_seconds=self.config.rate_limit_sweep_interval_seconds,
        )

        @self.app.on_event("startup")
        async def _startup():
            await self.sweeper.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.sweeper.stop()

        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _build_rate_limiter(self) -> FixedWindowRateLimiter:
        """Create the process-wide limiter from configuration."""
        if self._injected_rate_limiter is not None:
            limiter = self._injected_rate_limiter
            if limiter.metrics is None:
                limiter.metrics = self.metrics
            return limiter

        return FixedWindowRateLimiter(
            window_ms=self.config.rate_limit_window_ms,
            max_requests=self.config.rate_limit_max_requests,
            store=InMemoryQuotaStore(max_tracked_keys=self.config.rate_limit_max_tracked_keys),
            metrics=self.metrics,
        )

    def _setup_middleware(self):
        """Install the rate-limit gate beneath the shared request middleware."""
        self.rate_limiter = self._build_rate_limiter()
        self.app.add_middleware(RateLimitMiddleware, rate_limiter=self.rate_limiter)
        self.metrics.track_keys(lambda: len(self.rate_limiter.store))
        super()._setup_middleware()

        self.logger.info(
            "Rate limiting configured",
            window_ms=self.rate_limiter.window_ms,
            max_requests=self.rate_limiter.max_requests,
        )

    def _format_iso(self, value: datetime) -> str:
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    def _setup_gateway_routes(self):
        """Set up gateway-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "gateway",
                "message": "TreeShop Access Layer - API Gateway",
                "version": "1.0.0"
            }

        @self.app.get("/api/v1/status")
        async def api_status():
            """API status endpoint."""
            return JSONResponse(
                content={
                    "status": "OK",
                    "timestamp": self._format_iso(datetime.now(timezone.utc)),
                    "api_version": "v1",
                    "endpoints": PARCEL_ENDPOINTS,
                    "environment": {
                        "ENV": self.config.env,
                        "RATE_LIMITING": {
                            "WINDOW_MS": str(self.rate_limiter.window_ms),
                            "MAX_REQUESTS": str(self.rate_limiter.max_requests),
                        },
                    },
                },
                headers=CORS_HEADERS,
            )

        @self.app.options("/api/v1/status")
        async def api_status_options():
            return Response(status_code=200, headers=CORS_HEADERS)

        @self.app.get("/api/v1/rate-limits")
        async def get_rate_limits():
            """Get rate limiting status."""
            return {"rate_limits": self.rate_limiter.stats()}

    async def _check_dependencies(self):
        """Check gateway dependencies."""
        # The quota table lives in-process
        return {
            "rate_limit_store": "ok",
            "quota_sweeper": "running" if self.sweeper.running else "stopped",
        }


def create_app(config: Optional[ServiceConfig] = None):
    """Create FastAPI application."""
    service = GatewayService(config=config)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
