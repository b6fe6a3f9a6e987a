"""
Collaboration schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from showcase.kernel.collaboration import InviteAction


class InviteCreate(BaseModel):
    """Invite a creator to collaborate."""

    email: EmailStr


class InviteRespondRequest(BaseModel):
    """Accept or reject an invite."""

    action: InviteAction


class InviteResponse(BaseModel):
    """Invite state after a transition."""

    id: uuid.UUID
    project_id: uuid.UUID
    sender_id: uuid.UUID
    receiver_id: uuid.UUID
    status: str
    created_at: datetime
    responded_at: Optional[datetime] = None
    reused: bool = False

    class Config:
        from_attributes = True


class PendingInviteResponse(BaseModel):
    """A pending invite as listed for its receiver."""

    invite_id: uuid.UUID
    project_id: uuid.UUID
    project_title: str
    sender_id: uuid.UUID
    sender_name: str
    created_at: datetime

    class Config:
        from_attributes = True


class CollaboratorResponse(BaseModel):
    creator_id: uuid.UUID
    name: str
    email: str
    role: str
    added_at: datetime

    class Config:
        from_attributes = True


class CollaboratorRemovedResponse(BaseModel):
    project_id: uuid.UUID
    creator_id: uuid.UUID
    removed: bool = True
