"""
Collaboration models - invitations and the collaborator relation they produce.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showcase.kernel.models.base import Base, generate_uuid, utcnow

if TYPE_CHECKING:
    from showcase.kernel.models.creator import Creator
    from showcase.kernel.models.project import Project


class InviteStatus(str, Enum):
    """Invitation lifecycle state."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


COLLABORATOR_ROLE = "collaborator"


class ProjectCollaborator(Base):
    """
    Edit access granted to a creator on a project.

    Created only by accepting an invite; removed only by the primary creator.
    """

    __tablename__ = "project_collaborators"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("creators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(50),
        default=COLLABORATOR_ROLE,
        nullable=False,
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="collaborators",
    )
    creator: Mapped["Creator"] = relationship("Creator")

    __table_args__ = (
        UniqueConstraint("project_id", "creator_id", name="uq_project_collaborator"),
    )

    def __repr__(self) -> str:
        return f"<ProjectCollaborator project={self.project_id} creator={self.creator_id}>"


class CollaborationInvite(Base):
    """
    Invitation to collaborate on a project.

    One row per (project, receiver). A rejected invite is reset to pending
    on re-invite rather than duplicated.
    """

    __tablename__ = "collaboration_invites"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("creators.id"),
        nullable=False,
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("creators.id"),
        nullable=False,
        index=True,
    )
    status: Mapped[InviteStatus] = mapped_column(
        String(20),
        default=InviteStatus.PENDING.value,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    project: Mapped["Project"] = relationship("Project")
    sender: Mapped["Creator"] = relationship("Creator", foreign_keys=[sender_id])
    receiver: Mapped["Creator"] = relationship("Creator", foreign_keys=[receiver_id])

    __table_args__ = (
        UniqueConstraint("project_id", "receiver_id", name="uq_invite_project_receiver"),
    )

    def __repr__(self) -> str:
        return f"<CollaborationInvite {self.id} status={self.status}>"
