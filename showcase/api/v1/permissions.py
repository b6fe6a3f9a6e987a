"""
Permission introspection for the calling actor.
"""

from fastapi import APIRouter

from showcase.api.deps import ActorOrVisitor
from showcase.kernel.permissions import permissions_for, role_display_name
from showcase.schemas.permissions import ActorPermissionsResponse

router = APIRouter()


@router.get("/me/permissions", response_model=ActorPermissionsResponse)
async def my_permissions(actor: ActorOrVisitor):
    """Role and granted permissions of the caller (visitors included)."""
    return ActorPermissionsResponse(
        authenticated=actor.is_authenticated,
        role=actor.role.value,
        role_display_name=role_display_name(actor.role),
        permissions=sorted(p.value for p in permissions_for(actor.role)),
    )
