"""Unit tests for the fixed-window rate limiter."""

import threading

import pytest

from showcase.kernel.safety import (
    FailureBackoff,
    InMemoryRateLimitStore,
    RateLimiter,
    default_policies,
)


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenStore(InMemoryRateLimitStore):
    def check_and_incr(self, key, window_ms, max_requests, now_ms):
        raise ConnectionError("store down")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=clock)


class TestRateLimiter:
    """Tests for RateLimiter.check."""

    def test_window_allows_max_then_rejects(self, limiter: RateLimiter, clock: FakeClock):
        results = [limiter.check("write:1.2.3.4", 1000, 5) for _ in range(5)]
        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [4, 3, 2, 1, 0]

        sixth = limiter.check("write:1.2.3.4", 1000, 5)
        assert sixth.allowed is False
        assert sixth.remaining == 0
        assert sixth.reset_at > limiter.now_ms()

        clock.advance(1.0)
        assert limiter.now_ms() >= sixth.reset_at
        after = limiter.check("write:1.2.3.4", 1000, 5)
        assert after.allowed is True
        assert after.remaining == 4

    def test_rejection_does_not_extend_window(self, limiter: RateLimiter, clock: FakeClock):
        first = limiter.check("k", 1000, 1)
        clock.advance(0.5)
        rejected = limiter.check("k", 1000, 1)
        assert rejected.allowed is False
        assert rejected.reset_at == first.reset_at

    def test_keys_are_independent(self, limiter: RateLimiter):
        for _ in range(2):
            limiter.check("a", 1000, 2)
        assert limiter.check("a", 1000, 2).allowed is False
        assert limiter.check("b", 1000, 2).allowed is True

    def test_retry_after_rounds_up(self, limiter: RateLimiter, clock: FakeClock):
        limiter.check("k", 10_000, 1)
        clock.advance(2.5)
        rejected = limiter.check("k", 10_000, 1)
        assert rejected.retry_after_seconds(limiter.now_ms()) == 8

    def test_injected_empty_store_is_kept(self, clock: FakeClock):
        store = InMemoryRateLimitStore()
        assert len(store) == 0
        limiter = RateLimiter(store=store, clock=clock)
        assert limiter.store is store

    def test_store_failure_fails_closed(self, clock: FakeClock):
        limiter = RateLimiter(store=BrokenStore(), clock=clock)
        result = limiter.check("k", 1000, 5)
        assert result.allowed is False
        assert result.remaining == 0

    def test_expired_buckets_are_purged(self, clock: FakeClock):
        store = InMemoryRateLimitStore()
        limiter = RateLimiter(store=store, clock=clock)
        limiter.check("old", 1000, 5)
        assert len(store) == 1
        clock.advance(RateLimiter.PURGE_INTERVAL_MS / 1000)
        limiter.check("new", 1000, 5)
        assert len(store) == 1

    def test_concurrent_increments_are_exact(self, clock: FakeClock):
        limiter = RateLimiter(clock=clock)
        allowed = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                result = limiter.check("shared", 60_000, 100)
                with lock:
                    allowed.append(result.allowed)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert allowed.count(True) == 100
        assert allowed.count(False) == 300


class TestPolicies:
    def test_default_policies(self):
        policies = default_policies()
        assert policies["auth"].max_requests == 5
        assert policies["auth"].window_ms == 15 * 60 * 1000
        assert policies["write"].max_requests == 30
        assert policies["write"].window_ms == 60 * 1000
        assert policies["sensitive"].max_requests == 10
        assert policies["api"].max_requests == 100


class TestFailureBackoff:
    """Progressive backoff after failed authentication attempts."""

    def test_wait_doubles_per_failure(self, clock: FakeClock):
        backoff = FailureBackoff(clock=clock)
        assert backoff.check("1.2.3.4") == (True, 0)

        backoff.record_failure("1.2.3.4")
        assert backoff.check("1.2.3.4") == (False, 2)

        clock.advance(2)
        assert backoff.check("1.2.3.4") == (True, 0)

        backoff.record_failure("1.2.3.4")
        assert backoff.check("1.2.3.4") == (False, 4)

    def test_wait_is_capped(self, clock: FakeClock):
        backoff = FailureBackoff(clock=clock)
        for _ in range(20):
            backoff.record_failure("c")
        allowed, wait = backoff.check("c")
        assert allowed is False
        assert wait == FailureBackoff.MAX_WAIT_SECONDS

    def test_success_clears(self, clock: FakeClock):
        backoff = FailureBackoff(clock=clock)
        backoff.record_failure("c")
        backoff.record_success("c")
        assert backoff.check("c") == (True, 0)

    def test_resets_after_an_hour(self, clock: FakeClock):
        backoff = FailureBackoff(clock=clock)
        for _ in range(5):
            backoff.record_failure("c")
        clock.advance(FailureBackoff.RESET_AFTER_SECONDS + 1)
        assert backoff.check("c") == (True, 0)
        backoff.record_failure("c")
        assert backoff.check("c") == (False, 2)

    def test_reset_clears_every_client(self, clock: FakeClock):
        backoff = FailureBackoff(clock=clock)
        backoff.record_failure("a")
        backoff.record_failure("b")
        backoff.reset()
        assert backoff.check("a") == (True, 0)
        assert backoff.check("b") == (True, 0)
