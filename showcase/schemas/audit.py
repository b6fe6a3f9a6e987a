"""
Audit log schemas.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class AuditLogResponse(BaseModel):
    """One audit entry."""

    id: uuid.UUID
    actor_id: Optional[str]
    actor_type: str
    actor_email: Optional[str]
    action: str
    entity_type: str
    entity_id: Optional[str]
    # The ORM attribute is metadata_ (DeclarativeBase reserves `metadata`)
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
