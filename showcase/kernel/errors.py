"""
Error taxonomy for the authorization and request-safety layer.

Every error carries a stable machine-readable ``kind`` (the taxonomy bucket)
and ``code`` (the specific failure), plus the HTTP status it maps to.
Nothing here is retried by this layer; callers decide.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Top-level error buckets exposed to clients."""
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    VALIDATION_ERROR = "validation_error"


class GuardError(Exception):
    """Base exception for all guard-layer failures."""

    kind: ErrorKind = ErrorKind.FORBIDDEN
    http_status: int = 500
    default_code: str = "error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_response(self) -> dict:
        """Convert to the REST error envelope."""
        return {
            "error": {
                "kind": self.kind.value,
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.kind.value}/{self.code}: {self.message}>"


class Unauthorized(GuardError):
    """Missing or invalid credential."""
    kind = ErrorKind.UNAUTHORIZED
    http_status = 401
    default_code = "unauthorized"


class Forbidden(GuardError):
    """Valid credential, insufficient permission or access."""
    kind = ErrorKind.FORBIDDEN
    http_status = 403
    default_code = "forbidden"


class NotFound(GuardError):
    kind = ErrorKind.NOT_FOUND
    http_status = 404
    default_code = "not_found"


class Conflict(GuardError):
    """State conflict: duplicate invite, non-pending response, key reuse."""
    kind = ErrorKind.CONFLICT
    http_status = 409
    default_code = "conflict"


class ValidationFailed(GuardError):
    kind = ErrorKind.VALIDATION_ERROR
    http_status = 422
    default_code = "validation_error"


class RateLimited(GuardError):
    """Request budget exhausted for the current window."""
    kind = ErrorKind.RATE_LIMITED
    http_status = 429
    default_code = "rate_limited"

    def __init__(
        self,
        message: str,
        reset_at: int,
        limit: int,
        retry_after: int,
        code: Optional[str] = None,
    ):
        super().__init__(
            message,
            code=code,
            details={"reset_at": reset_at, "limit": limit, "retry_after": retry_after},
        )
        self.reset_at = reset_at
        self.limit = limit
        self.retry_after = retry_after


class IdempotencyInFlight(Conflict):
    """Another request with the same key is still executing. Safe to retry."""
    default_code = "idempotency_in_flight"

    def __init__(self, key: str):
        super().__init__(
            "A request with this idempotency key is already in progress",
            details={"retryable": True},
        )
        self.key = key


class IdempotencyKeyReused(Conflict):
    """The key was already used for a request with a different payload."""
    default_code = "idempotency_key_reused"

    def __init__(self, key: str):
        super().__init__(
            "Idempotency key was already used for a different request",
        )
        self.key = key


class StoreUnavailable(Exception):
    """A request-safety backing store could not be read or written."""
