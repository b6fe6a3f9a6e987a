"""Integration tests for the idempotency guard."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from showcase.kernel.errors import IdempotencyKeyReused, StoreUnavailable
from showcase.kernel.models.base import utcnow
from showcase.kernel.safety import (
    IdempotencyGuard,
    IdempotencyState,
    generate_idempotency_key,
    hash_request,
    scope_key,
)


class FakeClock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class BrokenSessionMaker:
    """Session factory whose sessions cannot reach the database."""

    def __call__(self):
        raise OperationalError("SELECT 1", {}, Exception("database is unavailable"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def guard(session_maker, clock: FakeClock) -> IdempotencyGuard:
    return IdempotencyGuard(
        session_maker,
        retention=timedelta(hours=24),
        in_flight_timeout=timedelta(seconds=60),
        fail_open=True,
        clock=clock,
    )


REQUEST = hash_request({"project_id": "p1", "email": "invitee@example.com"})


@pytest.mark.asyncio
async def test_first_begin_is_new(guard: IdempotencyGuard):
    result = await guard.begin("creator:1:collab.invite:abc", REQUEST)
    assert result.state == IdempotencyState.NEW
    assert result.tracked is True


@pytest.mark.asyncio
async def test_concurrent_begins_yield_one_new(guard: IdempotencyGuard):
    results = await asyncio.gather(
        guard.begin("k", REQUEST),
        guard.begin("k", REQUEST),
    )
    states = sorted(r.state.value for r in results)
    assert states == ["in-flight", "new"]


@pytest.mark.asyncio
async def test_concurrent_begins_across_guards(session_maker, clock: FakeClock):
    """Two guards model two worker processes; only the primary key arbitrates."""
    first = IdempotencyGuard(session_maker, clock=clock)
    second = IdempotencyGuard(session_maker, clock=clock)
    results = await asyncio.gather(first.begin("k", REQUEST), second.begin("k", REQUEST))
    states = sorted(r.state.value for r in results)
    assert states == ["in-flight", "new"]


@pytest.mark.asyncio
async def test_completed_replays_verbatim(guard: IdempotencyGuard):
    response = {"id": "inv-1", "status": "pending", "nested": {"list": [1, 2, 3]}}
    await guard.begin("k", REQUEST)
    await guard.complete("k", response, 201)

    replay = await guard.begin("k", REQUEST)
    assert replay.state == IdempotencyState.COMPLETED
    assert replay.cached_response == response
    assert replay.status_code == 201


@pytest.mark.asyncio
async def test_key_reuse_with_other_payload_conflicts(guard: IdempotencyGuard):
    await guard.begin("k", hash_request({"a": 1}))
    with pytest.raises(IdempotencyKeyReused):
        await guard.begin("k", hash_request({"a": 2}))


@pytest.mark.asyncio
async def test_key_reuse_after_completion_conflicts(guard: IdempotencyGuard):
    await guard.begin("k", hash_request({"a": 1}))
    await guard.complete("k", {"ok": True})
    with pytest.raises(IdempotencyKeyReused):
        await guard.begin("k", hash_request({"a": 2}))


@pytest.mark.asyncio
async def test_expired_record_re_executes(guard: IdempotencyGuard, clock: FakeClock):
    await guard.begin("k", REQUEST)
    await guard.complete("k", {"ok": True})

    clock.advance(hours=25)
    result = await guard.begin("k", hash_request({"different": "payload"}))
    assert result.state == IdempotencyState.NEW


@pytest.mark.asyncio
async def test_replay_after_expiry_executes_again(guard: IdempotencyGuard, clock: FakeClock):
    await guard.begin("k", REQUEST)
    await guard.complete("k", {"ok": True}, status_code=201)
    assert (await guard.begin("k", REQUEST)).state == IdempotencyState.COMPLETED

    clock.advance(hours=24, seconds=1)
    again = await guard.begin("k", REQUEST)
    assert again.state == IdempotencyState.NEW
    assert again.cached_response is None
    assert (await guard.begin("k", REQUEST)).state == IdempotencyState.IN_FLIGHT


@pytest.mark.asyncio
async def test_abandoned_in_flight_is_taken_over(guard: IdempotencyGuard, clock: FakeClock):
    await guard.begin("k", REQUEST)
    assert (await guard.begin("k", REQUEST)).state == IdempotencyState.IN_FLIGHT

    clock.advance(seconds=61)
    takeover = await guard.begin("k", REQUEST)
    assert takeover.state == IdempotencyState.NEW

    # The takeover refreshed the claim, so it is in flight again
    assert (await guard.begin("k", REQUEST)).state == IdempotencyState.IN_FLIGHT


@pytest.mark.asyncio
async def test_release_allows_retry(guard: IdempotencyGuard):
    await guard.begin("k", REQUEST)
    await guard.release("k")
    assert (await guard.begin("k", REQUEST)).state == IdempotencyState.NEW


@pytest.mark.asyncio
async def test_release_keeps_completed_records(guard: IdempotencyGuard):
    await guard.begin("k", REQUEST)
    await guard.complete("k", {"ok": True})
    await guard.release("k")
    assert (await guard.begin("k", REQUEST)).state == IdempotencyState.COMPLETED


@pytest.mark.asyncio
async def test_purge_expired(guard: IdempotencyGuard, clock: FakeClock):
    await guard.begin("a", REQUEST)
    await guard.begin("b", REQUEST)
    clock.advance(hours=25)
    assert await guard.purge_expired() == 2


@pytest.mark.asyncio
async def test_store_unavailable_fails_open():
    guard = IdempotencyGuard(BrokenSessionMaker(), fail_open=True)
    result = await guard.begin("k", REQUEST)
    assert result.state == IdempotencyState.NEW
    assert result.tracked is False


@pytest.mark.asyncio
async def test_store_unavailable_can_fail_closed():
    guard = IdempotencyGuard(BrokenSessionMaker(), fail_open=False)
    with pytest.raises(StoreUnavailable):
        await guard.begin("k", REQUEST)


class TestKeyHelpers:
    def test_hash_is_canonical(self):
        assert hash_request({"a": 1, "b": 2}) == hash_request({"b": 2, "a": 1})
        assert hash_request({"a": 1}) != hash_request({"a": 2})
        assert len(hash_request({})) == 64

    def test_generated_keys_are_stable(self):
        first = generate_idempotency_key("u1", "collab.invite", {"email": "x@example.com"})
        second = generate_idempotency_key("u1", "collab.invite", {"email": "x@example.com"})
        assert first == second
        assert first != generate_idempotency_key("u2", "collab.invite", {"email": "x@example.com"})

    def test_scope_key(self):
        assert scope_key("creator:42", "collab.invite", "abc") == "creator:42:collab.invite:abc"
