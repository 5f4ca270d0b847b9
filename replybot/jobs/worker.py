"""
Background job worker.

Runs in its own thread, polling the job queue for work. A claimed job is
dispatched to the handler registered for its ``job_type``. A handler
that raises marks the job FAILED; the worker never retries on its own
(see ``replybot.jobs.scheduler`` for retry cadence).
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from replybot.config.settings import JobSettings, get_settings
from replybot.errors import ConfigurationError, DataIntegrityError
from replybot.jobs.queue import JobQueue

logger = logging.getLogger(__name__)

# Registry of handlers: job_type -> callable(payload_dict) -> result dict or None
JobHandler = Callable[[dict], Optional[dict[str, Any]]]


class Worker:
    """
    Single-threaded job worker.

    One in-flight job at a time, so a job id is never executed twice
    concurrently by this worker.
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: dict[str, JobHandler] | None = None,
        settings: JobSettings | None = None,
        name: str = "worker-0",
    ) -> None:
        self._queue = queue
        self._handlers: dict[str, JobHandler] = handlers or {}
        self._settings = settings or get_settings().jobs
        self._name = name
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def register(self, job_type: str, handler: JobHandler) -> None:
        """Register a handler for a specific job type."""
        self._handlers[job_type] = handler

    @property
    def job_types(self) -> list[str]:
        return sorted(self._handlers)

    def start(self) -> None:
        """Start the worker in a background thread."""
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()
        logger.info("Worker '%s' started", self._name)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the worker to stop and wait for the current job to finish."""
        self._running = False
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("Worker '%s' stopped", self._name)

    @property
    def is_running(self) -> bool:
        return self._running

    def _loop(self) -> None:
        while self._running:
            try:
                executed = self.run_once()
            except Exception:
                logger.exception("Unhandled error in worker '%s'", self._name)
                executed = None
            if executed is None:
                self._stop_event.wait(self._settings.poll_interval)

    def run_once(self) -> Optional[str]:
        """
        Claim and execute one job synchronously.

        Returns the id of the job that ran, or None if the queue was empty.
        """
        job = self._queue.claim_next()
        if job is None:
            return None

        handler = self._handlers.get(job.job_type)
        if handler is None:
            self._queue.fail(job.id, f"No handler registered for '{job.job_type}'", retryable=False)
            logger.error("No handler for job type '%s' (job %s)", job.job_type, job.id)
            return job.id

        started = time.monotonic()
        try:
            logger.info("[%s] Executing job %s (%s)", self._name, job.id, job.job_type)
            result = handler(job.payload)
        except Exception as exc:
            error_msg = f"{type(exc).__name__}: {exc}"
            retryable = not isinstance(exc, (ConfigurationError, DataIntegrityError))
            self._queue.fail(job.id, error_msg, retryable=retryable)
            logger.warning("[%s] Job %s failed: %s", self._name, job.id, error_msg)
            return job.id

        self._queue.complete(job.id, result=result)
        logger.info("[%s] Job %s done in %.2fs", self._name, job.id, time.monotonic() - started)
        return job.id

    def run_until_empty(self, max_jobs: Optional[int] = None) -> list[str]:
        """Run queued jobs one by one until none are left (or *max_jobs* ran)."""
        executed: list[str] = []
        while max_jobs is None or len(executed) < max_jobs:
            job_id = self.run_once()
            if job_id is None:
                break
            executed.append(job_id)
        return executed
