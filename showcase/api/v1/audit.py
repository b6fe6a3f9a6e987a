"""
Admin audit endpoints - read-only views of the audit trail.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query

from showcase.api.deps import CurrentActor, DbSession, with_rate_limit
from showcase.api.gate import authorize
from showcase.kernel.audit import AuditFilter, AuditService
from showcase.kernel.models.audit_log import ActorType, AuditAction, EntityType
from showcase.kernel.permissions import Permission
from showcase.schemas.audit import AuditLogResponse
from showcase.schemas.common import PaginatedResponse

router = APIRouter(dependencies=[with_rate_limit("admin.audit", "sensitive")])


@router.get("/audit", response_model=PaginatedResponse[AuditLogResponse])
async def list_audit_logs(
    actor: CurrentActor,
    db: DbSession,
    actor_id: Optional[str] = Query(None),
    actor_type: Optional[ActorType] = Query(None),
    action: Optional[AuditAction] = Query(None),
    entity_type: Optional[EntityType] = Query(None),
    entity_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, description="Clamped to the configured maximum"),
):
    """Filtered audit entries, newest first."""
    authorize(actor, Permission.AUDIT_VIEW)

    filters = AuditFilter(
        actor_id=actor_id,
        actor_type=actor_type,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        start_date=start_date,
        end_date=end_date,
    )
    result = await AuditService(db).get_logs(filters, page=page, limit=limit)

    return PaginatedResponse.create(
        items=[AuditLogResponse.model_validate(r) for r in result.records],
        total=result.total_count,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/audit/security", response_model=List[AuditLogResponse])
async def list_security_events(
    actor: CurrentActor,
    db: DbSession,
    start_date: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    """Login failures, permission denials, rate-limit hits."""
    authorize(actor, Permission.AUDIT_VIEW)
    records = await AuditService(db).get_security_events(start_date=start_date, limit=limit)
    return [AuditLogResponse.model_validate(r) for r in records]


@router.get("/audit/entities/{entity_type}/{entity_id}", response_model=List[AuditLogResponse])
async def entity_history(
    entity_type: EntityType,
    entity_id: str,
    actor: CurrentActor,
    db: DbSession,
    limit: int = Query(20, ge=1, le=100),
):
    authorize(actor, Permission.AUDIT_VIEW)
    records = await AuditService(db).get_entity_history(entity_type, entity_id, limit=limit)
    return [AuditLogResponse.model_validate(r) for r in records]


@router.get("/audit/actors/{actor_id}", response_model=List[AuditLogResponse])
async def actor_activity(
    actor_id: str,
    actor: CurrentActor,
    db: DbSession,
    limit: int = Query(50, ge=1, le=100),
):
    authorize(actor, Permission.AUDIT_VIEW)
    records = await AuditService(db).get_user_activity(actor_id, limit=limit)
    return [AuditLogResponse.model_validate(r) for r in records]
