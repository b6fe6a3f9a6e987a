"""
Identity Core - actors and signed credentials.
"""

from showcase.kernel.identity.actor import Actor
from showcase.kernel.identity.jwt import (
    AccessTokenPayload,
    JWTManager,
    create_access_token,
    get_jwt_manager,
    resolve_actor,
)

__all__ = [
    "Actor",
    "AccessTokenPayload",
    "JWTManager",
    "create_access_token",
    "get_jwt_manager",
    "resolve_actor",
]
