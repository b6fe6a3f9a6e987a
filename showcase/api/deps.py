"""
FastAPI dependencies for actor resolution, request safety, and database sessions.
"""

from dataclasses import dataclass
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from showcase.database import async_session_maker
from showcase.api.gate import IdempotencyScope, enforce_rate_limit, rate_limit_client
from showcase.kernel.errors import Forbidden, RateLimited, Unauthorized, ValidationFailed
from showcase.kernel.identity import Actor, resolve_actor
from showcase.kernel.models.audit_log import ActorType
from showcase.kernel.models.creator import Creator
from showcase.kernel.safety import (
    IdempotencyGuard,
    RateLimiter,
    RateLimitResult,
    default_policies,
    get_auth_backoff,
    get_idempotency_guard,
    get_rate_limiter,
    scope_key,
)
from showcase.logging_config import bind_actor

IDEMPOTENCY_HEADER = "Idempotency-Key"
MAX_IDEMPOTENCY_KEY_LENGTH = 128

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_actor(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DbSession,
) -> Actor:
    """
    Resolve the request's actor. No credential means a visitor.

    A credential that is present but invalid is rejected rather than
    downgraded to a visitor. Each rejection from a client IP doubles the
    time that IP must wait before presenting another credential.
    """
    if not credentials:
        return Actor.visitor()

    client = get_client_ip(request) or "unknown"
    backoff = get_auth_backoff()
    allowed, wait = backoff.check(client)
    if not allowed:
        raise RateLimited(
            "Too many failed authentication attempts. Please try again later.",
            reset_at=backoff.now_ms() + wait * 1000,
            limit=1,
            retry_after=wait,
            code="auth_backoff",
        )

    actor = resolve_actor(credentials.credentials)
    if actor is None:
        backoff.record_failure(client)
        raise Unauthorized("Invalid or expired token", code="invalid_token")
    backoff.record_success(client)

    if actor.kind == ActorType.CREATOR:
        creator = await db.get(Creator, actor.id)
        if creator is None:
            raise Unauthorized("Creator not found", code="invalid_token")
        if not creator.is_active:
            raise Forbidden("Creator account is disabled", code="account_disabled")

    bind_actor(actor.label)
    return actor


async def get_current_actor(actor: Annotated[Actor, Depends(get_actor)]) -> Actor:
    """Resolved actor, which must hold a credential."""
    if not actor.is_authenticated:
        raise Unauthorized("Not authenticated")
    return actor


ActorOrVisitor = Annotated[Actor, Depends(get_actor)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    """Extract user agent from request."""
    return request.headers.get("User-Agent")


@dataclass(frozen=True)
class RequestMetadata:
    ip_address: Optional[str]
    user_agent: Optional[str]
    request_id: Optional[str]


def extract_request_metadata(request: Request) -> RequestMetadata:
    """Client metadata recorded alongside audit entries."""
    return RequestMetadata(
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        request_id=get_request_id(request),
    )


RequestMeta = Annotated[RequestMetadata, Depends(extract_request_metadata)]


def get_limiter() -> RateLimiter:
    return get_rate_limiter()


Limiter = Annotated[RateLimiter, Depends(get_limiter)]


def get_guard() -> IdempotencyGuard:
    return get_idempotency_guard()


Guard = Annotated[IdempotencyGuard, Depends(get_guard)]


def with_rate_limit(route_key: str, policy_name: str):
    """
    Dependency that counts the request against a named policy.

    Usage:
        @router.get("/audit", dependencies=[with_rate_limit("admin.audit", "sensitive")])
    """

    async def _check(
        request: Request,
        actor: ActorOrVisitor,
        limiter: Limiter,
    ) -> RateLimitResult:
        policy = default_policies()[policy_name]
        return enforce_rate_limit(
            limiter,
            route_key,
            rate_limit_client(actor, get_client_ip(request)),
            policy,
        )

    return Depends(_check)


def with_idempotency(route_key: str):
    """
    Dependency that yields an IdempotencyScope for the request.

    The client key from the Idempotency-Key header is scoped to
    (actor, route). Without the header the scope is inactive and the
    request is not deduplicated.
    """

    async def _scope(
        request: Request,
        actor: ActorOrVisitor,
        guard: Guard,
    ) -> IdempotencyScope:
        client_key = request.headers.get(IDEMPOTENCY_HEADER)
        if client_key is None:
            return IdempotencyScope(guard, None)

        client_key = client_key.strip()
        if not client_key or len(client_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise ValidationFailed(
                f"{IDEMPOTENCY_HEADER} must be 1-{MAX_IDEMPOTENCY_KEY_LENGTH} characters",
                code="invalid_idempotency_key",
            )
        return IdempotencyScope(
            guard,
            scope_key(actor.label, route_key, client_key),
        )

    return Depends(_scope)
