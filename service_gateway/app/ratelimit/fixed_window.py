"""
Fixed-window rate limiter for the Gateway service.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import Request

from shared.config import DEFAULT_RATE_LIMIT_MAX_REQUESTS, DEFAULT_RATE_LIMIT_WINDOW_MS
from shared.errors import ConfigurationError
from shared.logging import get_logger

from .store import InMemoryQuotaStore, QuotaSnapshot, QuotaStore

KEY_NAMESPACE = "rate_limit:"
UNKNOWN_CLIENT = "unknown"


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Decision:
    """Outcome of a single admission check."""

    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    key: str = ""
    count: int = 0

    def headers(self) -> Dict[str, str]:
        """Quota headers attached to admitted responses."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }


def client_key(request: Request) -> str:
    """Derive the quota key for a request.

    Only the left-most ``X-Forwarded-For`` entry is trusted. Requests without
    it share the ``unknown`` bucket. The socket peer address is not consulted.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    client = UNKNOWN_CLIENT
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            client = first
    return f"{KEY_NAMESPACE}{client}"


class FixedWindowRateLimiter:
    """Per-client fixed-window request counter.

    A client gets ``max_requests`` requests per window of ``window_ms``
    milliseconds. The window starts with the client's first request and is
    replaced wholesale by the first request that arrives after it expires, so
    a client can burst up to twice the limit across a window boundary.
    """

    def __init__(
        self,
        window_ms: int = DEFAULT_RATE_LIMIT_WINDOW_MS,
        max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS,
        store: Optional[QuotaStore] = None,
        clock: Callable[[], int] = epoch_millis,
        metrics=None,
    ):
        if window_ms <= 0 or max_requests <= 0:
            raise ConfigurationError(
                "Rate limit window and request budget must be positive",
                details={"window_ms": window_ms, "max_requests": max_requests},
            )
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.store = store if store is not None else InMemoryQuotaStore()
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("gateway.rate_limiter")

    def admit(self, key: str, now: Optional[int] = None) -> Decision:
        """Count a request against ``key`` and decide whether to let it through."""
        if now is None:
            now = self.clock()
        # Settings are read once per decision
        window_ms, limit = self.window_ms, self.max_requests

        record = self.store.hit(key, now, window_ms)
        allowed = record.count <= limit
        decision = Decision(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - record.count) if allowed else 0,
            reset_time=record.reset_time,
            key=key,
            count=record.count,
        )

        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_key=key,
                current_count=record.count,
                limit=limit,
                reset_time=record.reset_time,
            )

        if self.metrics is not None:
            self.metrics.record_rate_limit_decision(allowed)
        return decision

    def admit_request(self, request: Request) -> Decision:
        """Derive the client key for ``request`` and admit it."""
        return self.admit(client_key(request))

    def status(self, key: str) -> Optional[QuotaSnapshot]:
        """Current record for ``key``, if any. Does not count as a request."""
        return self.store.get(key)

    def reset(self, key: str) -> bool:
        """Forget ``key`` so its next request opens a fresh window."""
        existed = self.store.delete(key)
        if existed:
            self.logger.info("Rate limit reset", client_key=key)
        return existed

    def sweep(self, now: Optional[int] = None) -> int:
        """Evict records whose window has expired."""
        evicted = self.store.sweep(self.clock() if now is None else now)
        if self.metrics is not None:
            self.metrics.record_evictions(evicted)
        return evicted

    def stats(self) -> Dict[str, Any]:
        """Aggregate view of the quota table."""
        now = self.clock()
        active = [record for record in self.store.snapshots() if now <= record.reset_time]
        total_requests = sum(record.count for record in active)
        throttled = sum(1 for record in active if record.count > self.max_requests)
        return {
            "tracked_clients": len(self.store),
            "active_clients": len(active),
            "throttled_clients": throttled,
            "total_requests": total_requests,
            "average_requests_per_client": total_requests / max(1, len(active)),
            "configured_limits": {
                "window_ms": self.window_ms,
                "max_requests": self.max_requests,
            },
        }
