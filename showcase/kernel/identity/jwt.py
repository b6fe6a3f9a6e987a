"""
Signed credential handling.

Access tokens are HS256 JWTs carrying the actor kind and RBAC role. Issuing
tokens (login) belongs to the account service; this module only mints them
for that service and for tests, and resolves them into Actors.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from showcase.config import get_settings
from showcase.kernel.identity.actor import Actor
from showcase.kernel.models.audit_log import ActorType
from showcase.kernel.permissions.rbac import Role, parse_role


class AccessTokenPayload(BaseModel):
    """JWT access token payload."""

    sub: str  # Creator or admin ID
    email: str
    kind: str  # creator | admin
    role: str
    exp: datetime
    iat: datetime
    jti: str


class JWTManager:
    """JWT creation and verification."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = (
            access_token_expire_minutes or settings.access_token_expire_minutes
        )

    def create_access_token(
        self,
        subject_id: uuid.UUID,
        email: str,
        kind: ActorType,
        role: Optional[Role] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> tuple[str, datetime, str]:
        """
        Create a new access token.

        Returns:
            Tuple of (token, expiration_datetime, token_id)
        """
        if kind not in (ActorType.CREATOR, ActorType.ADMIN):
            raise ValueError(f"Cannot issue a credential for actor kind {kind.value!r}")

        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))
        jti = str(uuid.uuid4())
        resolved_role = role or (Role.ADMIN if kind == ActorType.ADMIN else Role.CREATOR)

        payload = {
            "sub": str(subject_id),
            "email": email,
            "kind": kind.value,
            "role": resolved_role.value,
            "exp": expire,
            "iat": now,
            "jti": jti,
            "type": "access",
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return token, expire, jti

    def verify_access_token(self, token: str) -> Optional[AccessTokenPayload]:
        """Verify and decode an access token. None when invalid or expired."""
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except JWTError:
            return None

        if payload.get("type") != "access":
            return None

        try:
            return AccessTokenPayload(
                sub=payload["sub"],
                email=payload["email"],
                kind=payload["kind"],
                role=payload["role"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                jti=payload["jti"],
            )
        except (KeyError, ValidationError):
            return None

    def resolve_actor(self, token: str) -> Optional[Actor]:
        """
        Resolve a bearer token into an Actor.

        Creators are always evaluated as the creator role regardless of what
        the token claims; only admin credentials may carry super_admin.
        """
        payload = self.verify_access_token(token)
        if payload is None:
            return None

        try:
            subject_id = uuid.UUID(payload.sub)
        except ValueError:
            return None

        if payload.kind == ActorType.CREATOR.value:
            return Actor(kind=ActorType.CREATOR, id=subject_id, email=payload.email)

        if payload.kind == ActorType.ADMIN.value:
            role = parse_role(payload.role)
            if role not in (Role.ADMIN, Role.SUPER_ADMIN):
                role = Role.ADMIN
            return Actor(kind=ActorType.ADMIN, id=subject_id, email=payload.email, role=role)

        return None


_jwt_manager: Optional[JWTManager] = None


def get_jwt_manager() -> JWTManager:
    """Get or create the default JWT manager."""
    global _jwt_manager
    if _jwt_manager is None:
        _jwt_manager = JWTManager()
    return _jwt_manager


def create_access_token(
    subject_id: uuid.UUID,
    email: str,
    kind: ActorType,
    role: Optional[Role] = None,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, datetime, str]:
    """Create an access token with the default manager."""
    return get_jwt_manager().create_access_token(subject_id, email, kind, role, expires_delta)


def resolve_actor(token: str) -> Optional[Actor]:
    """Resolve a bearer token with the default manager."""
    return get_jwt_manager().resolve_actor(token)
