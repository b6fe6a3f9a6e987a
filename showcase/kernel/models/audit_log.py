"""
Immutable audit log.

Rows are written once after a significant action and never updated. The only
deletion path is the age-based retention sweep in AuditService.cleanup().
Entries hold copies of actor and entity identifiers, not foreign keys, so
they outlive the rows they describe.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from showcase.kernel.models.base import Base, generate_uuid, utcnow


class AuditAction(str, Enum):
    """All auditable actions."""

    # Authentication
    LOGIN_SUCCESS = "auth.login.success"
    LOGIN_FAILED = "auth.login.failed"
    LOGOUT = "auth.logout"
    PASSWORD_CHANGED = "auth.password.changed"

    # Project lifecycle
    PROJECT_CREATED = "project.created"
    PROJECT_UPDATED = "project.updated"
    PROJECT_DELETED = "project.deleted"
    PROJECT_PUBLISHED = "project.published"
    PROJECT_UNPUBLISHED = "project.unpublished"

    # Creator management
    CREATOR_REGISTERED = "creator.registered"
    CREATOR_UPDATED = "creator.updated"
    CREATOR_DEACTIVATED = "creator.deactivated"
    CREATOR_REACTIVATED = "creator.reactivated"
    CREATOR_DELETED = "creator.deleted"

    # Collaboration
    COLLAB_INVITE_SENT = "collab.invite.sent"
    COLLAB_INVITE_ACCEPTED = "collab.invite.accepted"
    COLLAB_INVITE_REJECTED = "collab.invite.rejected"
    COLLAB_MEMBER_REMOVED = "collab.member.removed"

    # Comments & ratings
    COMMENT_CREATED = "comment.created"
    COMMENT_DELETED = "comment.deleted"
    RATING_SUBMITTED = "rating.submitted"

    # Admin
    ADMIN_ACTION = "admin.action"
    ADMIN_BULK_DELETE = "admin.bulk.delete"
    ADMIN_SETTINGS_CHANGED = "admin.settings.changed"

    # Security
    PERMISSION_DENIED = "security.permission.denied"
    RATE_LIMIT_EXCEEDED = "security.ratelimit.exceeded"
    SUSPICIOUS_ACTIVITY = "security.suspicious"


SECURITY_ACTIONS = (
    AuditAction.LOGIN_FAILED,
    AuditAction.PERMISSION_DENIED,
    AuditAction.RATE_LIMIT_EXCEEDED,
    AuditAction.SUSPICIOUS_ACTIVITY,
)


class EntityType(str, Enum):
    """Kinds of entity an audit entry can reference."""
    PROJECT = "project"
    CREATOR = "creator"
    ADMIN = "admin"
    COMMENT = "comment"
    RATING = "rating"
    COLLABORATION = "collaboration"
    CONTACT = "contact"
    SYSTEM = "system"


class ActorType(str, Enum):
    """Who performed the action."""
    VISITOR = "visitor"
    CREATOR = "creator"
    ADMIN = "admin"
    SYSTEM = "system"


class AuditLog(Base):
    """Append-only audit entry."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    # Actor (visitors have no id)
    actor_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    actor_type: Mapped[ActorType] = mapped_column(
        String(20),
        nullable=False,
    )
    actor_email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    action: Mapped[AuditAction] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[EntityType] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )

    # Named metadata_ because DeclarativeBase reserves `metadata`
    metadata_: Mapped[dict] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )
    user_agent: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_audit_logs_actor_time", "actor_id", "created_at"),
        Index("ix_audit_logs_action_time", "action", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"
