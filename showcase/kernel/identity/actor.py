"""
Actor - the resolved originator of a request.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from showcase.kernel.models.audit_log import ActorType
from showcase.kernel.permissions.rbac import Role


@dataclass(frozen=True)
class Actor:
    """
    An authenticated or anonymous request originator.

    Visitors carry no id. ``role`` is the RBAC role the actor is evaluated
    under; it is derived from ``kind`` unless the credential names a
    stronger admin role (super_admin).
    """

    kind: ActorType
    id: Optional[uuid.UUID] = None
    email: Optional[str] = None
    role: Optional[Role] = None

    def __post_init__(self) -> None:
        if self.role is None:
            object.__setattr__(self, "role", _DEFAULT_ROLE[self.kind])

    @classmethod
    def visitor(cls) -> "Actor":
        return cls(kind=ActorType.VISITOR)

    @classmethod
    def system(cls) -> "Actor":
        return cls(kind=ActorType.SYSTEM)

    @property
    def is_authenticated(self) -> bool:
        return self.kind != ActorType.VISITOR

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)

    @property
    def label(self) -> str:
        """Stable ``kind:id`` label used for log context and scoping keys."""
        return f"{self.kind.value}:{self.id or 'anonymous'}"


_DEFAULT_ROLE = {
    ActorType.VISITOR: Role.VISITOR,
    ActorType.CREATOR: Role.CREATOR,
    ActorType.ADMIN: Role.ADMIN,
    ActorType.SYSTEM: Role.SUPER_ADMIN,
}
