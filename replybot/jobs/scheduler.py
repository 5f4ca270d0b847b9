"""
Periodic maintenance loop.

Owns every retry cadence in the system:

- ``ensure_missing`` runs every ``ensure_missing_interval`` seconds; after a
  run with failed videos the next run uses exponential backoff instead.
- Failed jobs are re-enqueued under their own id once their backoff delay
  has passed, until ``max_attempts`` is reached.
- Idle rate-limiter buckets are evicted and old finished jobs pruned.

Backoff delay for the n-th consecutive failure (n >= 1):
``min(base * 2**(n-1), max) * (1 + uniform(-jitter, jitter))``.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any, Callable, Optional, Sequence

from replybot.clients.rate_limiter import RateLimiter
from replybot.config.settings import JobSettings, SchedulerSettings, get_settings
from replybot.jobs.queue import JobQueue, JobStatus
from replybot.jobs.worker import Worker

logger = logging.getLogger(__name__)


def backoff_delay(
    failures: int,
    base: float,
    maximum: float,
    jitter: float = 0.0,
    rng: Optional[random.Random] = None,
) -> float:
    """Seconds to wait after the *failures*-th consecutive failure."""
    delay = min(base * (2 ** max(0, failures - 1)), maximum)
    if jitter > 0:
        delay *= 1 + (rng or random).uniform(-jitter, jitter)
    return max(0.0, delay)


class Scheduler:
    """
    Drives the worker and the periodic maintenance tasks.

    Typical usage::

        scheduler = Scheduler(service.ensure_missing, service.queue, service.limiters, worker=service.worker)
        scheduler.start()
        # ... later ...
        scheduler.stop()

    ``tick()`` runs one maintenance pass synchronously and is what the
    background thread calls every ``tick_interval`` seconds.
    """

    def __init__(
        self,
        ensure_missing: Callable[[], dict[str, Any]],
        queue: JobQueue,
        limiters: Sequence[RateLimiter] = (),
        worker: Optional[Worker] = None,
        job_settings: Optional[JobSettings] = None,
        settings: Optional[SchedulerSettings] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        s = get_settings()
        self._ensure_missing = ensure_missing
        self._queue = queue
        self._limiters = list(limiters)
        self._worker = worker
        self._job_settings = job_settings or s.jobs
        self._settings = settings or s.scheduler
        self._clock = clock
        self._rng = rng or random.Random()

        self._next_ensure_at = 0.0
        self._ensure_failures = 0

        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ----- Lifecycle -----

    def start(self) -> None:
        """Start the worker (if any) and the maintenance thread."""
        if self._running:
            logger.warning("Scheduler already running, skipping start()")
            return
        self._running = True
        self._stop_event.clear()
        if self._worker is not None:
            self._worker.start()
        self._thread = threading.Thread(target=self._loop, name="scheduler", daemon=True)
        self._thread.start()
        logger.info("Scheduler started (tick every %.1fs)", self._settings.tick_interval)

    def stop(self, timeout: float = 10.0) -> None:
        self._running = False
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout / 2)
        if self._worker is not None:
            self._worker.stop(timeout=timeout / 2)
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def _loop(self) -> None:
        while self._running:
            try:
                self.tick()
            except Exception:
                logger.exception("Unhandled error in scheduler tick")
            self._stop_event.wait(self._settings.tick_interval)

    # ----- Maintenance -----

    def tick(self, now: Optional[float] = None) -> dict[str, Any]:
        """Run every maintenance task that is due. Returns what was done."""
        now = self._clock() if now is None else now
        return {
            "ensureMissing": self._maybe_ensure_missing(now),
            "retriedJobs": self.retry_failed_jobs(now),
            "evictedBuckets": sum(limiter.evict_stale() for limiter in self._limiters),
            "cleanedJobs": self._queue.cleanup_finished(self._job_settings.keep_finished),
        }

    def _maybe_ensure_missing(self, now: float) -> Optional[dict[str, Any]]:
        if now < self._next_ensure_at:
            return None

        # Pushed forward first so a raising run is not repeated every tick
        self._next_ensure_at = now + self._settings.ensure_missing_interval
        summary = self._ensure_missing()
        if summary.get("failed"):
            self._ensure_failures += 1
            delay = backoff_delay(
                self._ensure_failures,
                self._job_settings.retry_backoff_base,
                self._settings.ensure_missing_interval,
                self._job_settings.retry_jitter,
                self._rng,
            )
            logger.info(
                "ensure_missing had %d failures; next run in %.0fs",
                summary["failed"], delay,
            )
        else:
            self._ensure_failures = 0
            delay = self._settings.ensure_missing_interval
        self._next_ensure_at = now + delay
        return {k: summary.get(k) for k in ("total", "succeeded", "failed", "skipped")}

    def retry_failed_jobs(self, now: Optional[float] = None) -> list[str]:
        """
        Give each new retryable FAILED job a retry time, then re-enqueue the
        due ones. Jobs failed by configuration or missing records stay FAILED.

        Returns the ids re-enqueued.
        """
        now = self._clock() if now is None else now
        js = self._job_settings

        for job in self._queue.list(status=JobStatus.FAILED.value):
            if not job.retryable or job.retry_at is not None or job.attempts >= js.max_attempts:
                continue
            delay = backoff_delay(
                job.attempts, js.retry_backoff_base, js.retry_backoff_max, js.retry_jitter, self._rng
            )
            self._queue.schedule_retry(job.id, (job.finished_ts or now) + delay)
            logger.info("Job %s will be retried in %.0fs (attempt %d/%d)", job.id, delay, job.attempts + 1, js.max_attempts)

        retried = []
        for job in self._queue.failed_ready_for_retry(js.max_attempts, now):
            self._queue.enqueue(job.id, job.job_type, job.payload)
            retried.append(job.id)
        return retried
