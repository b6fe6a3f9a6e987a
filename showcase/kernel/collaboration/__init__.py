"""
Collaboration - multi-author project access via invitations.
"""

from showcase.kernel.collaboration.collaboration_service import (
    AccessLevel,
    CollaborationService,
    CollaboratorEntry,
    InviteAction,
    InviteResult,
    PendingInvite,
    RespondResult,
)

__all__ = [
    "AccessLevel",
    "CollaborationService",
    "CollaboratorEntry",
    "InviteAction",
    "InviteResult",
    "PendingInvite",
    "RespondResult",
]
