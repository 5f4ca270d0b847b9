"""Tests for the in-memory token bucket limiter."""

from __future__ import annotations

import threading

import pytest

from replybot.clients.rate_limiter import RateLimiter, admit
from replybot.errors import ConfigurationError, RateLimitExceeded
from tests.fakes import ManualClock


class TestAttempt:
    def test_second_call_denied_without_refill(self):
        limiter = RateLimiter(capacity=1, refill_rate=0, clock=ManualClock())
        assert [limiter.attempt("k"), limiter.attempt("k")] == [True, False]

    def test_new_key_starts_full(self):
        limiter = RateLimiter(capacity=5, refill_rate=0, clock=ManualClock())
        assert limiter.tokens("fresh") == 5
        assert limiter.attempt("fresh", cost=5)
        assert limiter.tokens("fresh") == 0

    def test_keys_are_independent(self):
        limiter = RateLimiter(capacity=1, refill_rate=0, clock=ManualClock())
        assert limiter.attempt("a")
        assert limiter.attempt("b")
        assert not limiter.attempt("a")

    def test_refill_is_proportional_to_elapsed_ms(self):
        clock = ManualClock()
        limiter = RateLimiter(capacity=10, refill_rate=0.002, clock=clock)
        assert limiter.attempt("k", cost=10)

        clock.advance(1500)  # 3 tokens
        assert limiter.attempt("k", cost=3)
        assert not limiter.attempt("k", cost=1)

    def test_refill_capped_at_capacity(self):
        clock = ManualClock()
        limiter = RateLimiter(capacity=3, refill_rate=1.0, clock=clock)
        limiter.attempt("k", cost=3)
        clock.advance(1_000_000)
        assert limiter.attempt("k", cost=3)
        assert not limiter.attempt("k", cost=1)

    def test_denied_attempt_deducts_nothing(self):
        clock = ManualClock()
        limiter = RateLimiter(capacity=4, refill_rate=0, clock=clock)
        limiter.attempt("k", cost=3)
        assert not limiter.attempt("k", cost=2)
        assert limiter.tokens("k") == 1

    def test_cost_above_capacity_is_configuration_error(self):
        limiter = RateLimiter(capacity=2, refill_rate=1.0, clock=ManualClock())
        with pytest.raises(ConfigurationError):
            limiter.attempt("k", cost=3)

    def test_invalid_construction(self):
        with pytest.raises(ConfigurationError):
            RateLimiter(capacity=0, refill_rate=1.0)
        with pytest.raises(ConfigurationError):
            RateLimiter(capacity=1, refill_rate=-1.0)


class TestWait:
    def test_waits_for_refill(self):
        clock = ManualClock()
        limiter = RateLimiter(capacity=1, refill_rate=0.001, clock=clock)
        limiter.attempt("k")

        slept = []

        def sleep(seconds):
            slept.append(seconds)
            clock.advance(seconds * 1000)

        assert limiter.wait("k", timeout=5.0, sleep_func=sleep)
        assert slept
        assert sum(slept) <= 5.0

    def test_times_out(self):
        clock = ManualClock()
        limiter = RateLimiter(capacity=1, refill_rate=0.000001, clock=clock)
        limiter.attempt("k")
        assert not limiter.wait("k", timeout=0.5, sleep_func=lambda s: clock.advance(s * 1000))

    def test_zero_refill_returns_immediately(self):
        limiter = RateLimiter(capacity=1, refill_rate=0, clock=ManualClock())
        limiter.attempt("k")
        slept = []
        assert not limiter.wait("k", timeout=10.0, sleep_func=slept.append)
        assert slept == []


class TestAdmit:
    def test_none_limiter_is_noop(self):
        admit(None, "anything", cost=1000)

    def test_raises_rate_limit_exceeded(self):
        limiter = RateLimiter(capacity=1, refill_rate=0, clock=ManualClock())
        limiter.attempt("k")
        with pytest.raises(RateLimitExceeded):
            admit(limiter, "k", timeout=0.1)


class TestEviction:
    def test_evicts_untouched_buckets(self):
        clock = ManualClock()
        limiter = RateLimiter(capacity=1, refill_rate=0, eviction_ttl=60, clock=clock)
        limiter.attempt("old")
        clock.advance(30_000)
        limiter.attempt("recent")
        clock.advance(40_000)

        assert limiter.evict_stale() == 1
        assert limiter.bucket_count == 1
        # An evicted key comes back full
        assert limiter.tokens("old") == 1


class TestConcurrency:
    def test_parallel_attempts_admit_exactly_capacity(self):
        limiter = RateLimiter(capacity=25, refill_rate=0)
        start = threading.Barrier(8)
        admitted = []
        admitted_lock = threading.Lock()

        def worker():
            start.wait()
            wins = sum(1 for _ in range(20) if limiter.attempt("youtube"))
            with admitted_lock:
                admitted.append(wins)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5.0)

        assert len(admitted) == 8
        assert sum(admitted) == 25
        assert limiter.tokens("youtube") == 0
