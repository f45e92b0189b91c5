"""
Rate limiting package for the Gateway.

Holds the fixed-window limiter, its quota-record store, the background
sweeper that evicts expired records, and the middleware that applies the
limiter to the versioned API prefix.
"""

from .fixed_window import Decision, FixedWindowRateLimiter, client_key
from .middleware import PROTECTED_PREFIX, RateLimitMiddleware
from .store import InMemoryQuotaStore, QuotaSnapshot, QuotaStore
from .sweeper import QuotaSweeper

__all__ = [
    "Decision",
    "FixedWindowRateLimiter",
    "InMemoryQuotaStore",
    "PROTECTED_PREFIX",
    "QuotaSnapshot",
    "QuotaStore",
    "QuotaSweeper",
    "RateLimitMiddleware",
    "client_key",
]
