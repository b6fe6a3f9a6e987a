"""
Creator model - registered authors who own or collaborate on projects.
"""

import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showcase.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from showcase.kernel.models.project import Project


class Creator(Base, TimestampMixin):
    """Creator account."""

    __tablename__ = "creators"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    owned_projects: Mapped[List["Project"]] = relationship(
        "Project",
        back_populates="primary_creator",
        foreign_keys="Project.creator_id",
    )

    def __repr__(self) -> str:
        return f"<Creator {self.email}>"
