"""
Pydantic schemas for API request/response validation.
"""

from showcase.schemas.audit import AuditLogResponse
from showcase.schemas.collaboration import (
    CollaboratorRemovedResponse,
    CollaboratorResponse,
    InviteCreate,
    InviteRespondRequest,
    InviteResponse,
    PendingInviteResponse,
)
from showcase.schemas.common import (
    ErrorBody,
    ErrorResponse,
    HealthResponse,
    PaginatedResponse,
)
from showcase.schemas.permissions import ActorPermissionsResponse

__all__ = [
    # Audit
    "AuditLogResponse",
    # Collaboration
    "CollaboratorRemovedResponse",
    "CollaboratorResponse",
    "InviteCreate",
    "InviteRespondRequest",
    "InviteResponse",
    "PendingInviteResponse",
    # Common
    "ErrorBody",
    "ErrorResponse",
    "HealthResponse",
    "PaginatedResponse",
    # Permissions
    "ActorPermissionsResponse",
]
