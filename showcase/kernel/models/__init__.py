"""
Kernel Data Models

SQLAlchemy models backing the guard layer: the ownership fields of creators
and projects, the collaboration relation, the audit log and idempotency records.
"""

from showcase.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from showcase.kernel.models.creator import Creator
from showcase.kernel.models.project import Project
from showcase.kernel.models.collaboration import (
    COLLABORATOR_ROLE,
    CollaborationInvite,
    InviteStatus,
    ProjectCollaborator,
)
from showcase.kernel.models.audit_log import (
    SECURITY_ACTIONS,
    ActorType,
    AuditAction,
    AuditLog,
    EntityType,
)
from showcase.kernel.models.idempotency import IdempotencyRecord, IdempotencyStatus

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    # Ownership
    "Creator",
    "Project",
    # Collaboration
    "COLLABORATOR_ROLE",
    "CollaborationInvite",
    "InviteStatus",
    "ProjectCollaborator",
    # Audit
    "SECURITY_ACTIONS",
    "ActorType",
    "AuditAction",
    "AuditLog",
    "EntityType",
    # Idempotency
    "IdempotencyRecord",
    "IdempotencyStatus",
]
