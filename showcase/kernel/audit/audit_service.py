"""
Audit log service.

Writes are best-effort and happen after the business transaction has
committed. A failed audit write is logged and swallowed; it never rolls back
or fails the mutation that triggered it. The cost is that a crash or database
error between the business commit and the audit commit loses that entry.
There is no retry queue.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import and_, delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from showcase.config import get_settings
from showcase.kernel.identity.actor import Actor
from showcase.kernel.models.audit_log import (
    SECURITY_ACTIONS,
    ActorType,
    AuditAction,
    AuditLog,
    EntityType,
)
from showcase.kernel.models.base import as_utc
from showcase.logging_config import get_logger

logger = get_logger(__name__)


class AuditEntry(BaseModel):
    """An audit record to be written."""

    model_config = ConfigDict(frozen=True)

    actor_type: ActorType
    action: AuditAction
    entity_type: EntityType
    actor_id: Optional[str] = None
    actor_email: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditFilter(BaseModel):
    """Query filter; every set field is ANDed."""

    actor_id: Optional[str] = None
    actor_type: Optional[ActorType] = None
    action: Optional[AuditAction] = None
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


@dataclass
class AuditPage:
    """One page of audit records, newest first."""

    records: List[AuditLog]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0


class AuditService:
    """
    Append-only audit trail.

    Usage:
        audit = AuditService(session)
        await audit.log(AuditEntry(
            actor_type=ActorType.CREATOR,
            actor_id=str(creator.id),
            action=AuditAction.COLLAB_INVITE_SENT,
            entity_type=EntityType.COLLABORATION,
            entity_id=str(invite.id),
            metadata={"project_id": project.id},
        ))
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(self, entry: AuditEntry) -> Optional[AuditLog]:
        """
        Persist an audit entry in its own commit.

        Returns the stored record, or None when the write failed. Call only
        after the triggering mutation has committed.
        """
        record = AuditLog(
            actor_id=entry.actor_id,
            actor_type=entry.actor_type.value,
            actor_email=entry.actor_email,
            action=entry.action.value,
            entity_type=entry.entity_type.value,
            entity_id=entry.entity_id,
            metadata_=_serialize_payload(entry.metadata),
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
        )
        try:
            self.session.add(record)
            await self.session.commit()
        except SQLAlchemyError:
            logger.warning(
                "Audit log write failed",
                exc_info=True,
                extra={
                    "action": entry.action.value,
                    "entity_type": entry.entity_type.value,
                    "entity_id": entry.entity_id,
                },
            )
            await self.session.rollback()
            return None
        return record

    async def get_logs(
        self,
        filters: Optional[AuditFilter] = None,
        page: int = 1,
        limit: int = 50,
    ) -> AuditPage:
        """Filtered, offset-paginated audit records ordered by created_at descending."""
        filters = filters or AuditFilter()
        page = max(page, 1)
        limit = min(max(limit, 1), get_settings().audit_page_limit_max)

        conditions = self._conditions(filters)
        where = and_(*conditions) if conditions else None

        query = select(AuditLog)
        count_query = select(func.count(AuditLog.id))
        if where is not None:
            query = query.where(where)
            count_query = count_query.where(where)

        query = (
            query.order_by(desc(AuditLog.created_at), desc(AuditLog.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )

        result = await self.session.execute(query)
        total = (await self.session.execute(count_query)).scalar() or 0

        return AuditPage(
            records=list(result.scalars().all()),
            total_count=total,
            page=page,
            limit=limit,
        )

    async def get_entity_history(
        self,
        entity_type: EntityType,
        entity_id: str,
        limit: int = 20,
    ) -> List[AuditLog]:
        """Recent records for a single entity, newest first."""
        query = (
            select(AuditLog)
            .where(
                and_(
                    AuditLog.entity_type == entity_type.value,
                    AuditLog.entity_id == entity_id,
                )
            )
            .order_by(desc(AuditLog.created_at), desc(AuditLog.id))
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_user_activity(self, actor_id: str, limit: int = 50) -> List[AuditLog]:
        """Recent records for a single actor, newest first."""
        query = (
            select(AuditLog)
            .where(AuditLog.actor_id == actor_id)
            .order_by(desc(AuditLog.created_at), desc(AuditLog.id))
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_security_events(
        self,
        start_date: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Login failures, permission denials, rate-limit hits and suspicious activity."""
        query = select(AuditLog).where(AuditLog.action.in_([a.value for a in SECURITY_ACTIONS]))
        if start_date:
            query = query.where(AuditLog.created_at >= as_utc(start_date))
        query = query.order_by(desc(AuditLog.created_at), desc(AuditLog.id)).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def cleanup(self, retention_days: Optional[int] = None) -> int:
        """
        Retention sweep: delete entries older than the retention window.

        Removal is by age only; there is no way to target a specific entry.
        Returns the number of deleted rows.
        """
        days = retention_days if retention_days is not None else get_settings().audit_retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await self.session.execute(
            delete(AuditLog)
            .where(AuditLog.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        deleted = result.rowcount or 0
        logger.info("Audit retention sweep", extra={"deleted": deleted, "retention_days": days})
        return deleted

    @staticmethod
    def _conditions(filters: AuditFilter) -> list:
        conditions = []
        if filters.actor_id:
            conditions.append(AuditLog.actor_id == filters.actor_id)
        if filters.actor_type:
            conditions.append(AuditLog.actor_type == filters.actor_type.value)
        if filters.action:
            conditions.append(AuditLog.action == filters.action.value)
        if filters.entity_type:
            conditions.append(AuditLog.entity_type == filters.entity_type.value)
        if filters.entity_id:
            conditions.append(AuditLog.entity_id == filters.entity_id)
        if filters.start_date:
            conditions.append(AuditLog.created_at >= filters.start_date)
        if filters.end_date:
            conditions.append(AuditLog.created_at <= filters.end_date)
        return conditions


class BoundAuditLogger:
    """Audit logger pre-bound to one actor and request."""

    def __init__(
        self,
        service: AuditService,
        actor: Actor,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.service = service
        self.actor = actor
        self.ip_address = ip_address
        self.user_agent = user_agent

    async def log(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        return await self.service.log(AuditEntry(
            actor_id=str(self.actor.id) if self.actor.id else None,
            actor_type=self.actor.kind,
            actor_email=self.actor.email,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            metadata=metadata or {},
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        ))


def create_audit_logger(
    session: AsyncSession,
    actor: Actor,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> BoundAuditLogger:
    """Create an audit logger bound to an actor and request metadata."""
    return BoundAuditLogger(AuditService(session), actor, ip_address, user_agent)


def _serialize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Convert payload values to JSON-serializable types."""
    result = {}
    for key, value in payload.items():
        result[key] = _serialize_value(value)
    return result


def _serialize_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    if isinstance(value, dict):
        return _serialize_payload(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    return value
