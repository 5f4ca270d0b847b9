"""Background jobs package: in-process queue, worker, handlers and scheduler."""

from replybot.jobs.handlers import PostReplyHandler
from replybot.jobs.queue import Job, JobQueue, JobStatus, JobType
from replybot.jobs.scheduler import Scheduler, backoff_delay
from replybot.jobs.worker import Worker

__all__ = [
    "PostReplyHandler",
    "Job",
    "JobQueue",
    "JobStatus",
    "JobType",
    "Scheduler",
    "backoff_delay",
    "Worker",
]
