"""In-memory token bucket rate limiter for quota-constrained external APIs."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from replybot.errors import ConfigurationError, RateLimitExceeded


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class _Bucket:
    """A single token bucket for one key."""

    tokens: float
    last_refill: float


class RateLimiter:
    """
    Keyed token bucket rate limiter.

    Each key (an API family, a user, ...) gets its own bucket, created full on
    first use. ``refill_rate`` is in tokens per millisecond. All bucket updates
    happen under one lock, so the limiter can be shared across threads.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        eviction_ttl: float = 3600.0,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        if capacity <= 0:
            raise ConfigurationError(f"Rate limiter capacity must be positive, got {capacity}")
        if refill_rate < 0:
            raise ConfigurationError(f"Rate limiter refill rate must be >= 0, got {refill_rate}")
        self._capacity = float(capacity)
        self._refill_rate = refill_rate
        self._eviction_ttl_ms = eviction_ttl * 1000.0
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    @property
    def capacity(self) -> float:
        return self._capacity

    def attempt(self, key: str, cost: float = 1) -> bool:
        """
        Refill the bucket for *key* and try to take *cost* tokens.

        Returns True if admitted. A denied attempt deducts nothing but still
        advances the refill timestamp, so elapsed time is never counted twice.
        Raises ConfigurationError when *cost* can never be admitted.
        """
        if cost > self._capacity:
            raise ConfigurationError(
                f"Cost {cost} exceeds rate limiter capacity {self._capacity} for key '{key}'"
            )

        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(tokens=self._capacity, last_refill=now)
                self._buckets[key] = bucket

            elapsed = max(0.0, now - bucket.last_refill)
            bucket.tokens = min(self._capacity, bucket.tokens + elapsed * self._refill_rate)
            bucket.last_refill = now

            if bucket.tokens < cost:
                return False
            bucket.tokens -= cost
            return True

    def wait(
        self,
        key: str,
        cost: float = 1,
        timeout: float = 30.0,
        sleep_func: Callable[[float], None] = time.sleep,
    ) -> bool:
        """
        Block until *cost* tokens are admitted or *timeout* seconds pass.

        Returns False on timeout. Sleeps for the estimated refill time
        between attempts.
        """
        waited = 0.0
        while True:
            if self.attempt(key, cost):
                return True
            if waited >= timeout or self._refill_rate == 0:
                return False
            delay = min(self._time_until(key, cost), timeout - waited)
            delay = max(delay, 0.01)
            sleep_func(delay)
            waited += delay

    def tokens(self, key: str) -> float:
        """Current balance for *key* without refilling (full if never used)."""
        with self._lock:
            bucket = self._buckets.get(key)
            return self._capacity if bucket is None else bucket.tokens

    def evict_stale(self) -> int:
        """Remove buckets not refilled for longer than eviction_ttl. Returns count evicted."""
        with self._lock:
            now = self._clock()
            stale_keys = [
                k for k, b in self._buckets.items()
                if (now - b.last_refill) > self._eviction_ttl_ms
            ]
            for k in stale_keys:
                del self._buckets[k]
            return len(stale_keys)

    @property
    def bucket_count(self) -> int:
        """Number of active buckets (for monitoring)."""
        with self._lock:
            return len(self._buckets)

    def _time_until(self, key: str, cost: float) -> float:
        """Seconds until *cost* tokens should be available for *key*."""
        with self._lock:
            bucket = self._buckets.get(key)
            missing = cost - (bucket.tokens if bucket else self._capacity)
        if missing <= 0:
            return 0.0
        return missing / self._refill_rate / 1000.0


def admit(
    limiter: RateLimiter | None,
    key: str,
    cost: float = 1,
    timeout: float = 30.0,
) -> None:
    """Wait for admission on *limiter* or raise RateLimitExceeded. No-op without a limiter."""
    if limiter is None:
        return
    if not limiter.wait(key, cost, timeout=timeout):
        raise RateLimitExceeded(
            f"Rate limit for '{key}' did not admit cost {cost} within {timeout:.0f}s"
        )
