"""
Project model.

Only the ownership fields matter to the guard layer; the rest of the project
record is owned by the presentation side of the platform.
"""

import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showcase.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from showcase.kernel.models.creator import Creator
    from showcase.kernel.models.collaboration import ProjectCollaborator


class Project(Base, TimestampMixin):
    """A showcased project with a fixed primary creator."""

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Primary creator, set at creation and never transferred by this layer
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("creators.id"),
        nullable=False,
        index=True,
    )

    primary_creator: Mapped["Creator"] = relationship(
        "Creator",
        back_populates="owned_projects",
        foreign_keys=[creator_id],
    )
    collaborators: Mapped[List["ProjectCollaborator"]] = relationship(
        "ProjectCollaborator",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Project {self.title[:50]}>"
