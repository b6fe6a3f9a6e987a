"""
Permission schemas.
"""

from typing import List

from pydantic import BaseModel


class ActorPermissionsResponse(BaseModel):
    """The caller's role and the permissions it grants."""

    authenticated: bool
    role: str
    role_display_name: str
    permissions: List[str]
