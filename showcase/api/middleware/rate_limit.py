"""
API-wide rate limiting - per user, falling back to per IP.

Every request under the API prefix is counted against the ``api`` policy.
Tighter per-route budgets (write, sensitive) are applied by the route
through the authorization gate.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from showcase.config import get_settings
from showcase.kernel.errors import RateLimited
from showcase.kernel.identity import get_jwt_manager
from showcase.kernel.safety import RateLimitResult, default_policies, get_rate_limiter

API_ROUTE_KEY = "api"


def _get_client_ip(request: Request) -> str:
    """Get client IP from request (X-Forwarded-For or direct)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _get_subject_from_jwt(request: Request) -> Optional[str]:
    """Subject of a valid Bearer token, if any. Full actor resolution runs later."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    token = auth[7:].strip()
    if not token:
        return None
    payload = get_jwt_manager().verify_access_token(token)
    return payload.sub if payload else None


def rate_limit_headers(result: RateLimitResult) -> dict:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Count API requests per user (or IP) and attach X-RateLimit-* headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return await call_next(request)

        path = request.url.path or ""
        if not path.startswith(settings.api_v1_prefix):
            return await call_next(request)

        limiter = get_rate_limiter()
        client = _get_subject_from_jwt(request) or _get_client_ip(request)
        result = limiter.check_policy(API_ROUTE_KEY, client, default_policies(settings)["api"])

        if not result.allowed:
            error = RateLimited(
                "Too many requests. Please try again later.",
                reset_at=result.reset_at,
                limit=result.limit,
                retry_after=result.retry_after_seconds(limiter.now_ms()),
            )
            headers = rate_limit_headers(result)
            headers["Retry-After"] = str(error.retry_after)
            return JSONResponse(
                status_code=error.http_status,
                content=error.to_response(),
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(rate_limit_headers(result))
        return response
