"""
Permission Core - static RBAC table.
"""

from showcase.kernel.permissions.rbac import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_valid_role,
    parse_permission,
    parse_role,
    permissions_for,
    role_display_name,
)

__all__ = [
    "ROLE_PERMISSIONS",
    "Permission",
    "Role",
    "has_all_permissions",
    "has_any_permission",
    "has_permission",
    "is_valid_role",
    "parse_permission",
    "parse_role",
    "permissions_for",
    "role_display_name",
]
