"""
Authorization gate.

Every mutating endpoint runs through the same sequence:

    1. rate limit           RateLimited
    2. idempotency begin    replay, IdempotencyInFlight, IdempotencyKeyReused
    3. permission           Forbidden / Unauthorized
    4. project access       NotFound / Forbidden
    5. execute              (the service commits its own transaction)
    6. audit                best-effort, after the commit
    7. idempotency complete (or release when 3-5 raised)

The first failing step short-circuits the rest.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from showcase.config import get_settings
from showcase.kernel.audit import create_audit_logger
from showcase.kernel.collaboration import AccessLevel, CollaborationService
from showcase.kernel.errors import (
    Forbidden,
    IdempotencyInFlight,
    NotFound,
    RateLimited,
    Unauthorized,
)
from showcase.kernel.identity.actor import Actor
from showcase.kernel.models.audit_log import AuditAction, EntityType
from showcase.kernel.models.project import Project
from showcase.kernel.permissions import Permission, has_permission
from showcase.kernel.safety import (
    BeginResult,
    IdempotencyGuard,
    IdempotencyState,
    RateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    hash_request,
)
from showcase.logging_config import get_logger

logger = get_logger(__name__)


def authorize(
    actor: Actor,
    permission: Permission,
    require_authenticated: bool = False,
) -> None:
    """
    Require ``actor``'s role to hold ``permission``.

    Raises:
        Unauthorized: visitor on an operation that needs a credential
        Forbidden: the role lacks the permission
    """
    if require_authenticated and not actor.is_authenticated:
        raise Unauthorized("Authentication required")
    if not has_permission(actor.role, permission):
        raise Forbidden(
            f"Permission '{permission.value}' required",
            code="permission_denied",
            details={"permission": permission.value, "role": actor.role.value},
        )


async def authorize_project_access(
    session: AsyncSession,
    actor: Actor,
    project_id: uuid.UUID,
    level: AccessLevel = AccessLevel.EDIT,
) -> Project:
    """
    Require edit or owner access on a project.

    Admins bypass the edit check. Owner-level operations (invite, manage
    collaborators, delete) stay with the primary creator alone.

    A missing project raises NotFound when ``existence_disclosure`` is on,
    otherwise Forbidden, so callers cannot probe for project ids.
    """
    service = CollaborationService(session)
    project = await service.get_project(project_id)

    if project is None:
        if actor.is_admin or get_settings().existence_disclosure:
            raise NotFound("Project not found", code="project_not_found")
        raise Forbidden("Access to this project is denied", code="project_access_denied")

    if level == AccessLevel.EDIT and actor.is_admin:
        return project

    if level == AccessLevel.OWNER:
        allowed = service.is_primary_creator(project, actor.id)
    else:
        allowed = await service.can_edit(project, actor.id)

    if not allowed:
        raise Forbidden(
            "Only the primary creator can do this"
            if level == AccessLevel.OWNER
            else "You do not have edit access to this project",
            code="project_access_denied",
            details={"required": level.value},
        )
    return project


def enforce_rate_limit(
    limiter: RateLimiter,
    route_key: str,
    client: str,
    policy: RateLimitPolicy,
) -> RateLimitResult:
    """Count one request against ``policy``; raise RateLimited when over budget."""
    result = limiter.check_policy(route_key, client, policy)
    if not result.allowed:
        retry_after = result.retry_after_seconds(limiter.now_ms())
        raise RateLimited(
            "Too many requests. Please try again later.",
            reset_at=result.reset_at,
            limit=result.limit,
            retry_after=retry_after,
        )
    return result


def rate_limit_client(actor: Actor, ip_address: Optional[str]) -> str:
    """User id when a credential is present, otherwise the client IP."""
    if actor.id is not None:
        return str(actor.id)
    return ip_address or "unknown"


class IdempotencyScope:
    """
    Idempotency handle for one request.

    Inactive (every call a no-op) when the client sent no Idempotency-Key.
    """

    def __init__(self, guard: IdempotencyGuard, key: Optional[str]):
        self.guard = guard
        self.key = key
        self._begun: Optional[BeginResult] = None

    @property
    def active(self) -> bool:
        return self.key is not None

    @property
    def tracked(self) -> bool:
        return self._begun is not None and self._begun.tracked

    async def begin(self, payload: Any) -> Optional[BeginResult]:
        """
        Claim the key for this request.

        Returns the BeginResult (COMPLETED carries the cached response), or
        None when inactive. Raises IdempotencyInFlight while a duplicate is
        still executing.
        """
        if not self.active:
            return None
        begun = await self.guard.begin(self.key, hash_request(payload))
        if begun.state == IdempotencyState.IN_FLIGHT:
            raise IdempotencyInFlight(self.key)
        if begun.state == IdempotencyState.NEW:
            self._begun = begun
        return begun

    async def complete(self, response: Any, status_code: int = 200) -> None:
        if self.tracked:
            await self.guard.complete(self.key, response, status_code)

    async def release(self) -> None:
        if self.tracked:
            await self.guard.release(self.key)


@dataclass
class AuditEvent:
    action: AuditAction
    entity_type: EntityType
    entity_id: Optional[Any] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OperationResult:
    """What an executed (or replayed) operation returns to the route."""
    response: Any
    status_code: int = 200
    audit: List[AuditEvent] = field(default_factory=list)
    replayed: bool = False


class GuardedOperation:
    """
    Runs one mutation through the full gate.

    Usage:
        op = GuardedOperation(
            session, actor,
            permission=Permission.COLLAB_INVITE,
            route_key="collab.invite",
            rate_limit=policies["write"],
            idempotency=scope,
            project_id=project_id,
            project_access=AccessLevel.OWNER,
        )
        result = await op.run(execute, payload=body)
    """

    def __init__(
        self,
        session: AsyncSession,
        actor: Actor,
        *,
        permission: Permission,
        route_key: str,
        limiter: Optional[RateLimiter] = None,
        rate_limit: Optional[RateLimitPolicy] = None,
        idempotency: Optional[IdempotencyScope] = None,
        project_id: Optional[uuid.UUID] = None,
        project_access: AccessLevel = AccessLevel.EDIT,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.session = session
        self.actor = actor
        self.permission = permission
        self.route_key = route_key
        self.limiter = limiter
        self.rate_limit = rate_limit
        self.idempotency = idempotency
        self.project_id = project_id
        self.project_access = project_access
        self.ip_address = ip_address
        self.user_agent = user_agent

    async def run(
        self,
        execute: Callable[[], Awaitable[OperationResult]],
        payload: Any = None,
    ) -> OperationResult:
        audit = create_audit_logger(self.session, self.actor, self.ip_address, self.user_agent)

        if self.rate_limit is not None and self.limiter is not None:
            try:
                enforce_rate_limit(
                    self.limiter,
                    self.route_key,
                    rate_limit_client(self.actor, self.ip_address),
                    self.rate_limit,
                )
            except RateLimited as exc:
                await audit.log(
                    AuditAction.RATE_LIMIT_EXCEEDED,
                    EntityType.SYSTEM,
                    metadata={"route": self.route_key, "limit": exc.limit},
                )
                raise

        if self.idempotency is not None:
            begun = await self.idempotency.begin(
                {"route": self.route_key, "payload": payload}
            )
            if begun is not None and begun.state == IdempotencyState.COMPLETED:
                logger.info(
                    "Replaying idempotent response",
                    extra={"route": self.route_key},
                )
                return OperationResult(
                    response=begun.cached_response,
                    status_code=begun.status_code or 200,
                    replayed=True,
                )

        try:
            try:
                authorize(self.actor, self.permission)
                if self.project_id is not None:
                    await authorize_project_access(
                        self.session, self.actor, self.project_id, self.project_access
                    )
            except Forbidden as exc:
                await self.session.rollback()
                await audit.log(
                    AuditAction.PERMISSION_DENIED,
                    EntityType.PROJECT if self.project_id else EntityType.SYSTEM,
                    entity_id=self.project_id,
                    metadata={"route": self.route_key, "code": exc.code},
                )
                raise

            result = await execute()
        except Exception:
            if self.idempotency is not None:
                await self.idempotency.release()
            raise

        for event in result.audit:
            await audit.log(event.action, event.entity_type, event.entity_id, event.metadata)

        if self.idempotency is not None:
            await self.idempotency.complete(result.response, result.status_code)
        return result
