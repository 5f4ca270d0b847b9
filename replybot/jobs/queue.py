"""
In-process job queue.

Jobs carry a caller-assigned id, which makes enqueue idempotent: a job
that is QUEUED or RUNNING under the same id is returned unchanged, and a
finished one is reset to QUEUED (that is how a failed job is retried).
Nothing is persisted; jobs live as long as the JobQueue instance.

Every status transition happens under one lock, and callers only ever
see copies of the stored jobs.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional

from replybot.storage.models import utc_now_iso

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class JobType(str, Enum):
    POST_REPLY = "post-reply"


_FINISHED = (JobStatus.SUCCEEDED.value, JobStatus.FAILED.value)


@dataclass
class Job:
    """A unit of deferred, side-effecting work."""

    id: str

    job_type: str

    # Interpreted by the handler registered for job_type
    payload: dict[str, Any] = field(default_factory=dict)

    status: str = JobStatus.QUEUED.value

    created_at: str = field(default_factory=utc_now_iso)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    # "<ExceptionType>: <message>" when FAILED
    error: Optional[str] = None

    # Handler return value when SUCCEEDED
    result: Optional[dict[str, Any]] = None

    # Number of times the job has been claimed
    attempts: int = 0

    # False when the failure would repeat on a re-run (configuration or
    # missing records); the scheduler never retries such jobs
    retryable: bool = True

    # Clock time of the last finish, and when a scheduled retry becomes due
    finished_ts: Optional[float] = None
    retry_at: Optional[float] = None

    # Ordering keys: first creation, and latest (re-)enqueue
    created_seq: int = 0
    queued_seq: int = 0

    @property
    def is_finished(self) -> bool:
        return self.status in _FINISHED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.job_type,
            "payload": self.payload,
            "status": self.status,
            "createdAt": self.created_at,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "error": self.error,
            "result": self.result,
            "attempts": self.attempts,
            "retryable": self.retryable,
        }


class JobQueue:
    """Thread-safe, in-memory job queue owned by one service instance."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._clock = clock

    @staticmethod
    def _snapshot(job: Job) -> Job:
        return replace(job, payload=copy.deepcopy(job.payload), result=copy.deepcopy(job.result))

    # ----- Queue operations -----

    def enqueue(self, job_id: str, job_type: str, payload: Optional[dict[str, Any]] = None) -> Job:
        """
        Add a job, or re-queue a finished one with the same id.

        A job already QUEUED or RUNNING under *job_id* is returned as-is;
        the new payload is ignored.
        """
        if not job_id:
            raise ValueError("job id is required")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None and not job.is_finished:
                logger.info("Job %s already %s, not re-enqueued", job_id, job.status)
                return self._snapshot(job)

            seq = next(self._seq)
            if job is None:
                job = Job(
                    id=job_id,
                    job_type=job_type,
                    payload=dict(payload or {}),
                    created_seq=seq,
                    queued_seq=seq,
                )
                self._jobs[job_id] = job
                logger.info("Enqueued job %s (%s)", job_id, job_type)
            else:
                previous = job.status
                job.job_type = job_type
                job.payload = dict(payload or {})
                job.status = JobStatus.QUEUED.value
                job.started_at = None
                job.completed_at = None
                job.error = None
                job.result = None
                job.finished_ts = None
                job.retry_at = None
                job.retryable = True
                job.queued_seq = seq
                logger.info("Re-enqueued job %s (was %s, %d attempts so far)", job_id, previous, job.attempts)
            return self._snapshot(job)

    def claim_next(self, job_type: Optional[str] = None) -> Optional[Job]:
        """Move the oldest QUEUED job to RUNNING and return it, or None if idle."""
        with self._lock:
            queued = [
                j for j in self._jobs.values()
                if j.status == JobStatus.QUEUED.value and (job_type is None or j.job_type == job_type)
            ]
            if not queued:
                return None
            job = min(queued, key=lambda j: j.queued_seq)
            job.status = JobStatus.RUNNING.value
            job.started_at = utc_now_iso()
            job.attempts += 1
            logger.info("Claimed job %s (%s, attempt %d)", job.id, job.job_type, job.attempts)
            return self._snapshot(job)

    def complete(self, job_id: str, result: Optional[dict[str, Any]] = None) -> bool:
        """RUNNING -> SUCCEEDED. Returns False if the job is not RUNNING."""
        return self._finish(job_id, JobStatus.SUCCEEDED, result=result)

    def fail(self, job_id: str, error: str, retryable: bool = True) -> bool:
        """
        RUNNING -> FAILED with *error*. Returns False if the job is not RUNNING.

        A job failed with ``retryable=False`` is left alone by automatic retries.
        """
        return self._finish(job_id, JobStatus.FAILED, error=error, retryable=retryable)

    def _finish(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
        retryable: bool = True,
    ) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != JobStatus.RUNNING.value:
                logger.warning("Cannot mark job %s %s: not running", job_id, status.value)
                return False
            job.status = status.value
            job.completed_at = utc_now_iso()
            job.finished_ts = self._clock()
            job.result = result
            job.error = error
            job.retryable = retryable
        if status is JobStatus.FAILED:
            logger.warning("Job %s failed: %s", job_id, error)
        else:
            logger.info("Job %s succeeded", job_id)
        return True

    # ----- Queries -----

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return self._snapshot(job) if job is not None else None

    def list(self, status: Optional[str] = None, limit: Optional[int] = None) -> list[Job]:
        """All jobs (or those in *status*) in order of first creation."""
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: j.created_seq)
            if status is not None:
                jobs = [j for j in jobs if j.status == JobStatus(status).value]
            if limit is not None:
                jobs = jobs[:limit]
            return [self._snapshot(j) for j in jobs]

    def counts(self) -> dict[str, int]:
        with self._lock:
            out = {s.value: 0 for s in JobStatus}
            for job in self._jobs.values():
                out[job.status] += 1
            return out

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # ----- Retry bookkeeping -----

    def schedule_retry(self, job_id: str, retry_at: float) -> bool:
        """Record when a FAILED job becomes due for retry."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != JobStatus.FAILED.value:
                return False
            job.retry_at = retry_at
            return True

    def failed_ready_for_retry(self, max_attempts: int, now: Optional[float] = None) -> list[Job]:
        """Retryable FAILED jobs under *max_attempts* whose scheduled retry time has passed."""
        now = self._clock() if now is None else now
        with self._lock:
            return [
                self._snapshot(j)
                for j in sorted(self._jobs.values(), key=lambda j: j.created_seq)
                if j.status == JobStatus.FAILED.value
                and j.retryable
                and j.attempts < max_attempts
                and j.retry_at is not None
                and j.retry_at <= now
            ]

    # ----- Maintenance -----

    def cleanup_finished(self, keep_last: int = 500) -> int:
        """
        Drop the oldest finished jobs, keeping the *keep_last* most recent.

        FAILED jobs still eligible for a scheduled retry count as finished;
        a retried job that was dropped can still be re-enqueued by id.
        """
        with self._lock:
            finished = sorted(
                (j for j in self._jobs.values() if j.is_finished),
                key=lambda j: j.finished_ts or 0.0,
            )
            excess = finished[: max(0, len(finished) - keep_last)]
            for job in excess:
                del self._jobs[job.id]
        if excess:
            logger.info("Cleaned up %d finished jobs", len(excess))
        return len(excess)
