"""
Role-based permission model.

A static, immutable role -> permission-set table. Pure lookups only: no I/O,
no dynamic grants, and unknown roles or permissions evaluate to False rather
than raising.
"""

from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional, Union


class Role(str, Enum):
    """Platform roles."""
    VISITOR = "visitor"          # Unauthenticated public users
    CREATOR = "creator"          # Registered creators who own/manage projects
    ADMIN = "admin"              # Platform administrators
    SUPER_ADMIN = "super_admin"  # Full system access


class Permission(str, Enum):
    """Atomic capability tags."""

    # Project
    PROJECT_VIEW = "project:view"
    PROJECT_CREATE = "project:create"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"
    PROJECT_PUBLISH = "project:publish"

    # Creator
    CREATOR_VIEW = "creator:view"
    CREATOR_UPDATE = "creator:update"
    CREATOR_DELETE = "creator:delete"

    # Admin
    ADMIN_VIEW = "admin:view"
    ADMIN_MANAGE = "admin:manage"
    ADMIN_ANALYTICS = "admin:analytics"

    # Comments
    COMMENT_CREATE = "comment:create"
    COMMENT_DELETE = "comment:delete"
    COMMENT_MODERATE = "comment:moderate"

    # Ratings
    RATING_CREATE = "rating:create"
    RATING_VIEW = "rating:view"

    # Collaboration
    COLLAB_INVITE = "collab:invite"
    COLLAB_MANAGE = "collab:manage"

    # Audit
    AUDIT_VIEW = "audit:view"


RoleLike = Union[Role, str]
PermissionLike = Union[Permission, str]


_VISITOR = frozenset({
    Permission.PROJECT_VIEW,
    Permission.CREATOR_VIEW,
    Permission.COMMENT_CREATE,
    Permission.RATING_CREATE,
    Permission.RATING_VIEW,
})

_CREATOR = _VISITOR | frozenset({
    Permission.PROJECT_CREATE,
    Permission.PROJECT_UPDATE,
    Permission.PROJECT_DELETE,
    Permission.PROJECT_PUBLISH,
    Permission.CREATOR_UPDATE,
    Permission.COLLAB_INVITE,
    Permission.COLLAB_MANAGE,
})

# Everything except platform management
_ADMIN = frozenset(Permission) - {Permission.ADMIN_MANAGE}

ROLE_PERMISSIONS: Mapping[Role, FrozenSet[Permission]] = MappingProxyType({
    Role.VISITOR: _VISITOR,
    Role.CREATOR: _CREATOR,
    Role.ADMIN: _ADMIN,
    Role.SUPER_ADMIN: frozenset(Permission),
})

ROLE_DISPLAY_NAMES: Mapping[Role, str] = MappingProxyType({
    Role.VISITOR: "Visitor",
    Role.CREATOR: "Creator",
    Role.ADMIN: "Administrator",
    Role.SUPER_ADMIN: "Super Administrator",
})


def parse_role(candidate: object) -> Optional[Role]:
    """Coerce a boundary value to a Role, or None if it names no role."""
    if isinstance(candidate, Role):
        return candidate
    if not isinstance(candidate, str):
        return None
    try:
        return Role(candidate)
    except ValueError:
        return None


def parse_permission(candidate: object) -> Optional[Permission]:
    if isinstance(candidate, Permission):
        return candidate
    if not isinstance(candidate, str):
        return None
    try:
        return Permission(candidate)
    except ValueError:
        return None


def is_valid_role(candidate: object) -> bool:
    """Check whether a raw value names a known role."""
    return parse_role(candidate) is not None


def permissions_for(role: RoleLike) -> FrozenSet[Permission]:
    """Permission set for a role; empty for unknown roles."""
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS[parsed]


def has_permission(role: RoleLike, permission: PermissionLike) -> bool:
    """Check if a role grants a specific permission."""
    parsed = parse_permission(permission)
    if parsed is None:
        return False
    return parsed in permissions_for(role)


def has_all_permissions(role: RoleLike, permissions: Iterable[PermissionLike]) -> bool:
    """Check if a role grants every listed permission."""
    return all(has_permission(role, p) for p in permissions)


def has_any_permission(role: RoleLike, permissions: Iterable[PermissionLike]) -> bool:
    """Check if a role grants at least one listed permission."""
    return any(has_permission(role, p) for p in permissions)


def role_display_name(role: RoleLike) -> str:
    """Human-readable role name."""
    parsed = parse_role(role)
    if parsed is None:
        return "Unknown"
    return ROLE_DISPLAY_NAMES[parsed]
