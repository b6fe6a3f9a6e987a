"""
Request safety - rate limiting and idempotency.
"""

from showcase.kernel.safety.idempotency import (
    BeginResult,
    IdempotencyGuard,
    IdempotencyState,
    generate_idempotency_key,
    get_idempotency_guard,
    hash_request,
    scope_key,
)
from showcase.kernel.safety.rate_limiter import (
    FailureBackoff,
    InMemoryRateLimitStore,
    RateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    default_policies,
    get_auth_backoff,
    get_rate_limiter,
)

__all__ = [
    "BeginResult",
    "IdempotencyGuard",
    "IdempotencyState",
    "generate_idempotency_key",
    "get_idempotency_guard",
    "hash_request",
    "scope_key",
    "FailureBackoff",
    "InMemoryRateLimitStore",
    "RateLimiter",
    "RateLimitPolicy",
    "RateLimitResult",
    "default_policies",
    "get_auth_backoff",
    "get_rate_limiter",
]
