"""
Idempotency records for side-effecting requests.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from showcase.kernel.models.base import Base, utcnow


class IdempotencyStatus(str, Enum):
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"


class IdempotencyRecord(Base):
    """
    One row per scoped idempotency key.

    The primary key on ``key`` is the compare-and-set point: of several
    concurrent inserts for the same key exactly one succeeds.
    """

    __tablename__ = "idempotency_records"

    # Scoped key: "{actor}:{route}:{client key}"
    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    request_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    status: Mapped[IdempotencyStatus] = mapped_column(
        String(20),
        default=IdempotencyStatus.IN_FLIGHT.value,
        nullable=False,
    )
    stored_response: Mapped[Optional[Any]] = mapped_column(
        JSON,
        nullable=True,
    )
    status_code: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<IdempotencyRecord {self.key} status={self.status}>"
