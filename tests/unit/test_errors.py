"""Unit tests for the error taxonomy."""

from showcase.kernel.errors import (
    Conflict,
    ErrorKind,
    Forbidden,
    GuardError,
    IdempotencyInFlight,
    IdempotencyKeyReused,
    NotFound,
    RateLimited,
    Unauthorized,
    ValidationFailed,
)


class TestErrorTaxonomy:
    def test_kinds_and_statuses(self):
        cases = [
            (Unauthorized("x"), ErrorKind.UNAUTHORIZED, 401),
            (Forbidden("x"), ErrorKind.FORBIDDEN, 403),
            (NotFound("x"), ErrorKind.NOT_FOUND, 404),
            (Conflict("x"), ErrorKind.CONFLICT, 409),
            (ValidationFailed("x"), ErrorKind.VALIDATION_ERROR, 422),
        ]
        for error, kind, status in cases:
            assert isinstance(error, GuardError)
            assert error.kind is kind
            assert error.http_status == status

    def test_response_envelope(self):
        error = Conflict("Already pending", code="invite_already_pending")
        assert error.to_response() == {
            "error": {
                "kind": "conflict",
                "code": "invite_already_pending",
                "message": "Already pending",
                "details": {},
            }
        }

    def test_default_code(self):
        assert NotFound("missing").code == "not_found"

    def test_rate_limited_carries_reset(self):
        error = RateLimited("slow down", reset_at=1_700_000_060_000, limit=30, retry_after=42)
        body = error.to_response()["error"]
        assert body["kind"] == "rate_limited"
        assert body["details"] == {"reset_at": 1_700_000_060_000, "limit": 30, "retry_after": 42}
        assert error.http_status == 429

    def test_idempotency_conflicts(self):
        in_flight = IdempotencyInFlight("k")
        assert isinstance(in_flight, Conflict)
        assert in_flight.code == "idempotency_in_flight"
        assert in_flight.details["retryable"] is True

        reused = IdempotencyKeyReused("k")
        assert reused.code == "idempotency_key_reused"
        assert reused.http_status == 409
