"""
Kernel Layer

The foundational components every request passes through:
- Permission Core (static role -> permission table)
- Identity Core (actors and signed credentials)
- Collaboration (invitation state machine, derived project access)
- Audit Trail (append-only, best-effort after commit)
- Request Safety (rate limiting, idempotency)

Invariants:
- Edit access exists only for the primary creator or a collaborator row
- An accepted invite corresponds to exactly one collaborator row
- Audit entries are never updated
"""

from showcase.kernel.models import (
    ActorType,
    AuditAction,
    AuditLog,
    CollaborationInvite,
    Creator,
    EntityType,
    IdempotencyRecord,
    InviteStatus,
    Project,
    ProjectCollaborator,
)
from showcase.kernel.permissions import Permission, Role

__all__ = [
    # Ownership
    "Creator",
    "Project",
    # Collaboration
    "CollaborationInvite",
    "InviteStatus",
    "ProjectCollaborator",
    # Audit
    "ActorType",
    "AuditAction",
    "AuditLog",
    "EntityType",
    # Idempotency
    "IdempotencyRecord",
    # Permissions
    "Permission",
    "Role",
]
