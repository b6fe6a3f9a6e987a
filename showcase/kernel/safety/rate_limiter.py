"""
Fixed-window rate limiting.

Buckets are keyed by "{route}:{client}" and live in process memory. Every
read-modify-write of a bucket happens under one lock, which is the single
point of mutation that keeps concurrent increments on the same key exact.
For multi-worker deployments the store must be externalized; the limiter
only calls check_and_incr() and purge_expired() on it.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from showcase.config import Settings, get_settings
from showcase.logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class RateLimitPolicy:
    """A per-route request budget."""

    name: str
    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # epoch milliseconds
    limit: int

    def retry_after_seconds(self, now_ms: int) -> int:
        return max(0, math.ceil((self.reset_at - now_ms) / 1000))


@dataclass
class RateLimitBucket:
    key: str
    window_start: int  # epoch milliseconds
    window_ms: int
    count: int

    @property
    def reset_at(self) -> int:
        return self.window_start + self.window_ms

    def expired(self, now_ms: int) -> bool:
        return now_ms >= self.reset_at


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> RateLimitBucket."""

    def __init__(self):
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()

    def check_and_incr(
        self,
        key: str,
        window_ms: int,
        max_requests: int,
        now_ms: int,
    ) -> Tuple[bool, RateLimitBucket]:
        """
        Atomically count a request against the key's current window.

        Returns (allowed, bucket snapshot). A rejected request does not
        increment the counter.
        """
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.expired(now_ms):
                bucket = RateLimitBucket(key=key, window_start=now_ms, window_ms=window_ms, count=0)
                self._buckets[key] = bucket
            if bucket.count >= max_requests:
                return False, RateLimitBucket(**vars(bucket))
            bucket.count += 1
            return True, RateLimitBucket(**vars(bucket))

    def purge_expired(self, now_ms: int) -> int:
        """Drop buckets whose window has elapsed to avoid unbounded growth."""
        with self._lock:
            stale = [k for k, b in self._buckets.items() if b.expired(now_ms)]
            for k in stale:
                del self._buckets[k]
            return len(stale)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)

    def __len__(self) -> int:
        return len(self._buckets)


class RateLimiter:
    """
    Window counter keyed by client identity + logical route.

    Store errors fail closed: the request is rejected rather than let through
    unmetered.
    """

    PURGE_INTERVAL_MS = 5 * 60 * 1000

    def __init__(
        self,
        store: Optional[InMemoryRateLimitStore] = None,
        clock: Clock = time.time,
    ):
        self.store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._last_purge = 0

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def check(self, key: str, window_ms: int, max_requests: int) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed."""
        now = self.now_ms()
        self._maybe_purge(now)
        try:
            allowed, bucket = self.store.check_and_incr(key, window_ms, max_requests, now)
        except Exception:
            logger.error(
                "Rate limit store failure; rejecting request",
                exc_info=True,
                extra={"rate_limit_key": key},
            )
            return RateLimitResult(False, 0, now + window_ms, max_requests)

        remaining = max(0, max_requests - bucket.count)
        if not allowed:
            logger.info(
                "Rate limit exceeded",
                extra={"rate_limit_key": key, "limit": max_requests, "reset_at": bucket.reset_at},
            )
        return RateLimitResult(allowed, remaining, bucket.reset_at, max_requests)

    def check_policy(self, route_key: str, client: str, policy: RateLimitPolicy) -> RateLimitResult:
        return self.check(f"{route_key}:{client}", policy.window_ms, policy.max_requests)

    def _maybe_purge(self, now_ms: int) -> None:
        if now_ms - self._last_purge < self.PURGE_INTERVAL_MS:
            return
        self._last_purge = now_ms
        try:
            self.store.purge_expired(now_ms)
        except Exception:
            logger.warning("Rate limit purge failed", exc_info=True)


def default_policies(settings: Optional[Settings] = None) -> Dict[str, RateLimitPolicy]:
    """Named per-route policies from configuration."""
    s = settings or get_settings()
    return {
        "auth": RateLimitPolicy(
            "auth", s.rate_limit_auth_window_seconds * 1000, s.rate_limit_auth_max_requests
        ),
        "api": RateLimitPolicy(
            "api", s.rate_limit_api_window_seconds * 1000, s.rate_limit_api_max_requests
        ),
        "write": RateLimitPolicy(
            "write", s.rate_limit_write_window_seconds * 1000, s.rate_limit_write_max_requests
        ),
        "sensitive": RateLimitPolicy(
            "sensitive",
            s.rate_limit_sensitive_window_seconds * 1000,
            s.rate_limit_sensitive_max_requests,
        ),
    }


class FailureBackoff:
    """
    Progressive backoff for repeated authentication failures.

    After n consecutive failures the client waits 2**n seconds (capped at
    15 minutes) before the next attempt. A success clears the record; an
    hour without attempts also clears it.
    """

    MAX_WAIT_SECONDS = 15 * 60
    RESET_AFTER_SECONDS = 60 * 60

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._failures: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def check(self, client: str) -> Tuple[bool, int]:
        """Returns (allowed, wait_seconds)."""
        now = self._clock()
        with self._lock:
            entry = self._failures.get(client)
            if entry is None:
                return True, 0
            count, last_attempt = entry
            if now - last_attempt > self.RESET_AFTER_SECONDS:
                del self._failures[client]
                return True, 0
            wait = min(2 ** count, self.MAX_WAIT_SECONDS)
            wait_until = last_attempt + wait
            if now < wait_until:
                return False, math.ceil(wait_until - now)
            return True, 0

    def record_failure(self, client: str) -> None:
        now = self._clock()
        with self._lock:
            count, _ = self._failures.get(client, (0, now))
            self._failures[client] = (count + 1, now)

    def record_success(self, client: str) -> None:
        with self._lock:
            self._failures.pop(client, None)

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()

    def now_ms(self) -> int:
        return int(self._clock() * 1000)


_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter shared by the middleware and route dependencies."""
    global _limiter
    if _limiter is None:
        _limiter = RateLimiter()
    return _limiter


_auth_backoff: Optional[FailureBackoff] = None


def get_auth_backoff() -> FailureBackoff:
    """Process-wide backoff for rejected credentials, keyed by client IP."""
    global _auth_backoff
    if _auth_backoff is None:
        _auth_backoff = FailureBackoff()
    return _auth_backoff
