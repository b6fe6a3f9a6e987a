"""
Idempotency guard for side-effecting requests.

A client-supplied key, scoped to (actor, route), identifies one logical
request across retries. The first request with a key inserts an in-flight
record and executes; duplicates either see it in flight (and are told to
retry) or, once completed, get the stored response back verbatim.

The database primary key on the scoped key is the compare-and-set point
across processes. Within a process, begin() for the same key is also
serialized on an asyncio lock.

Store-unavailable policy: fail open. If the idempotency store cannot be read
or written, the request executes once without dedupe and a warning is
logged. Turning ``fail_open`` off raises StoreUnavailable instead.
"""

import asyncio
import hashlib
import json
import weakref
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showcase.config import get_settings
from showcase.kernel.errors import IdempotencyKeyReused, StoreUnavailable
from showcase.kernel.models.base import as_utc, utcnow
from showcase.kernel.models.idempotency import IdempotencyRecord, IdempotencyStatus
from showcase.logging_config import get_logger

logger = get_logger(__name__)

MAX_BEGIN_ATTEMPTS = 3


class IdempotencyState(str, Enum):
    NEW = "new"
    IN_FLIGHT = "in-flight"
    COMPLETED = "completed"


@dataclass(frozen=True)
class BeginResult:
    """
    Outcome of begin().

    ``tracked`` is False when the store was unavailable and the request is
    running without dedupe; complete() and release() are no-ops then.
    """

    state: IdempotencyState
    cached_response: Any = None
    status_code: Optional[int] = None
    tracked: bool = True


def hash_request(payload: Any) -> str:
    """SHA-256 of the canonical JSON form of a request payload."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def generate_idempotency_key(user_id: str, action: str, data: Any) -> str:
    """
    Deterministic key for server-side callers that retry a mutation without
    a client-supplied key. HTTP requests without a key are not deduplicated.
    """
    return hash_request({"user_id": user_id, "action": action, "data": data})


def scope_key(actor_label: str, route: str, client_key: str) -> str:
    """Scope a client key to (actor, route) so keys never collide across callers."""
    return f"{actor_label}:{route}:{client_key}"


class IdempotencyGuard:
    """
    Deduplicates side-effecting requests by scoped key.

    Usage:
        guard = IdempotencyGuard(async_session_maker)
        begun = await guard.begin(key, request_hash)
        if begun.state is IdempotencyState.COMPLETED:
            return begun.cached_response
        if begun.state is IdempotencyState.IN_FLIGHT:
            raise IdempotencyInFlight(key)
        try:
            response = await do_mutation()
        except Exception:
            await guard.release(key)
            raise
        await guard.complete(key, response)
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        retention: Optional[timedelta] = None,
        in_flight_timeout: Optional[timedelta] = None,
        fail_open: Optional[bool] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = get_settings()
        self._session_maker = session_maker
        self.retention = retention or timedelta(hours=settings.idempotency_retention_hours)
        self.in_flight_timeout = in_flight_timeout or timedelta(
            seconds=settings.idempotency_in_flight_timeout_seconds
        )
        self.fail_open = settings.idempotency_fail_open if fail_open is None else fail_open
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def begin(self, key: str, request_hash: str) -> BeginResult:
        """
        Claim ``key`` for execution or report its current state.

        Raises:
            IdempotencyKeyReused: the key is bound to a different request hash
            StoreUnavailable: the store failed and fail_open is off
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock

        async with lock:
            try:
                return await self._begin(key, request_hash)
            except SQLAlchemyError as exc:
                if not self.fail_open:
                    raise StoreUnavailable("Idempotency store unavailable") from exc
                logger.warning(
                    "Idempotency store unavailable; executing without dedupe",
                    exc_info=True,
                    extra={"idempotency_key": key},
                )
                return BeginResult(IdempotencyState.NEW, tracked=False)

    async def _begin(self, key: str, request_hash: str) -> BeginResult:
        for _ in range(MAX_BEGIN_ATTEMPTS):
            now = self._clock()
            async with self._session_maker() as session:
                session.add(IdempotencyRecord(
                    key=key,
                    request_hash=request_hash,
                    status=IdempotencyStatus.IN_FLIGHT.value,
                    created_at=now,
                    expires_at=now + self.retention,
                ))
                try:
                    await session.commit()
                    return BeginResult(IdempotencyState.NEW)
                except IntegrityError:
                    await session.rollback()

                record = (await session.execute(
                    select(IdempotencyRecord).where(IdempotencyRecord.key == key)
                )).scalar_one_or_none()
                if record is None:
                    # Released or purged between our insert and read
                    continue

                if as_utc(record.expires_at) <= now:
                    await session.execute(
                        delete(IdempotencyRecord)
                        .where(
                            IdempotencyRecord.key == key,
                            IdempotencyRecord.expires_at <= now,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    await session.commit()
                    continue

                if record.request_hash != request_hash:
                    raise IdempotencyKeyReused(key)

                if record.status == IdempotencyStatus.COMPLETED:
                    return BeginResult(
                        IdempotencyState.COMPLETED,
                        cached_response=record.stored_response,
                        status_code=record.status_code,
                    )

                abandoned_before = now - self.in_flight_timeout
                if as_utc(record.created_at) <= abandoned_before:
                    result = await session.execute(
                        update(IdempotencyRecord)
                        .where(
                            IdempotencyRecord.key == key,
                            IdempotencyRecord.status == IdempotencyStatus.IN_FLIGHT.value,
                            IdempotencyRecord.created_at <= abandoned_before,
                        )
                        .values(created_at=now, expires_at=now + self.retention)
                        .execution_options(synchronize_session=False)
                    )
                    await session.commit()
                    if result.rowcount == 1:
                        logger.warning(
                            "Took over abandoned in-flight idempotency record",
                            extra={"idempotency_key": key},
                        )
                        return BeginResult(IdempotencyState.NEW)
                    continue

                return BeginResult(IdempotencyState.IN_FLIGHT)

        # Lost every race; the caller reports a retryable conflict
        return BeginResult(IdempotencyState.IN_FLIGHT)

    async def complete(
        self,
        key: str,
        response: Any,
        status_code: int = 200,
    ) -> None:
        """Store the response for replay. Failures are logged, not raised."""
        now = self._clock()
        try:
            async with self._session_maker() as session:
                await session.execute(
                    update(IdempotencyRecord)
                    .where(
                        IdempotencyRecord.key == key,
                        IdempotencyRecord.status == IdempotencyStatus.IN_FLIGHT.value,
                    )
                    .values(
                        status=IdempotencyStatus.COMPLETED.value,
                        stored_response=response,
                        status_code=status_code,
                        expires_at=now + self.retention,
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError:
            # The mutation already committed; the record will age out as abandoned
            logger.error(
                "Failed to store idempotent response",
                exc_info=True,
                extra={"idempotency_key": key},
            )

    async def release(self, key: str) -> None:
        """Drop an in-flight record after a failed execution so a retry can run."""
        try:
            async with self._session_maker() as session:
                await session.execute(
                    delete(IdempotencyRecord)
                    .where(
                        IdempotencyRecord.key == key,
                        IdempotencyRecord.status == IdempotencyStatus.IN_FLIGHT.value,
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError:
            logger.warning(
                "Failed to release idempotency record",
                exc_info=True,
                extra={"idempotency_key": key},
            )

    async def purge_expired(self) -> int:
        """Delete records past their retention window."""
        async with self._session_maker() as session:
            result = await session.execute(
                delete(IdempotencyRecord)
                .where(IdempotencyRecord.expires_at <= self._clock())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount or 0


_guard: Optional[IdempotencyGuard] = None


def get_idempotency_guard() -> IdempotencyGuard:
    """Process-wide guard bound to the application session factory."""
    global _guard
    if _guard is None:
        from showcase.database import async_session_maker

        _guard = IdempotencyGuard(async_session_maker)
    return _guard
