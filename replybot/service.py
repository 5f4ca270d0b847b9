"""
Service boundary used by the HTTP API and the CLIs.

``ReplyBotService`` owns all process-scoped state (rate limiters, job
queue, worker, scheduler) and hands it to the components that need it.
Every method returns JSON-serializable data and reports expected
failures in that data instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from replybot.clients.http_client import ExternalHttpClient
from replybot.clients.local_embedder import SentenceTransformerEmbedder
from replybot.clients.openai_provider import (
    OpenAIAudioTranscriber,
    OpenAICompletionProvider,
    OpenAIEmbedder,
)
from replybot.clients.rate_limiter import RateLimiter
from replybot.clients.youtube import (
    GoogleOAuthTokenProvider,
    YouTubeDataClient,
    YouTubeWriteClient,
)
from replybot.config.settings import Settings, get_settings
from replybot.drafts.generator import DraftGenerator
from replybot.drafts.retriever import ChunkRetriever
from replybot.indexing.orchestrator import VideoIndexOrchestrator
from replybot.ingestion.pipeline import IngestionPipeline
from replybot.jobs.handlers import PostReplyHandler
from replybot.jobs.queue import JobQueue, JobType
from replybot.jobs.scheduler import Scheduler
from replybot.jobs.worker import Worker
from replybot.storage.chunk_store import ChunkStore
from replybot.storage.comment_store import CommentStore
from replybot.storage.draft_store import DraftStore
from replybot.storage.models import DraftStatus
from replybot.storage.schema import initialize_database
from replybot.storage.video_index_store import VideoIndexStore
from replybot.transcripts.resolver import TranscriptResolver
from replybot.transcripts.sources import (
    AITranscriptionSource,
    ArchiveMirrorSource,
    CaptionsSource,
)

logger = logging.getLogger(__name__)


@dataclass
class RateLimiters:
    """One token bucket limiter per quota-constrained provider."""

    youtube: RateLimiter
    embeddings: RateLimiter
    completions: RateLimiter

    def all(self) -> list[RateLimiter]:
        return [self.youtube, self.embeddings, self.completions]

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiters":
        rl = settings.rate_limit
        return cls(
            youtube=RateLimiter(rl.youtube_capacity, rl.youtube_refill_rate, rl.eviction_ttl),
            embeddings=RateLimiter(rl.embeddings_capacity, rl.embeddings_refill_rate, rl.eviction_ttl),
            completions=RateLimiter(rl.completions_capacity, rl.completions_refill_rate, rl.eviction_ttl),
        )


class ReplyBotService:
    """Facade over indexing, drafting, approval and the job queue."""

    def __init__(
        self,
        orchestrator: VideoIndexOrchestrator,
        generator: DraftGenerator,
        queue: JobQueue,
        worker: Worker,
        draft_store: DraftStore,
        index_store: VideoIndexStore,
        limiters: Optional[RateLimiters] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.generator = generator
        self.queue = queue
        self.worker = worker
        self.draft_store = draft_store
        self.index_store = index_store
        self.limiters = limiters
        self.scheduler = scheduler

    # ----- Indexing -----

    def ensure_video_index(self, video_id: str, force_reindex: bool = False) -> dict[str, Any]:
        return self.orchestrator.ensure_video_index(video_id, force_reindex=force_reindex)

    def ensure_missing(self) -> dict[str, Any]:
        return self.orchestrator.ensure_missing()

    def get_video_index(self, video_id: str) -> Optional[dict[str, Any]]:
        record = self.index_store.get(video_id)
        return record.to_dict() if record is not None else None

    # ----- Drafts -----

    def generate_drafts_for_pending_comments(self, limit: Optional[int] = None) -> dict[str, Any]:
        return self.generator.generate_drafts_for_pending_comments(limit)

    def approve_draft(self, draft_id: str, user_id: str) -> dict[str, Any]:
        """
        Approve a PENDING draft and enqueue its ``post-reply`` job.

        The job id is ``post-<draftId>``, so approving twice never queues
        two posts. Returns ``approved: False`` with an error when the draft
        is missing or not approvable.
        """
        draft = self.draft_store.get(draft_id)
        if draft is None:
            return {"approved": False, "error": f"Draft {draft_id} not found", "draft": None, "job": None}

        if not self.draft_store.approve(draft_id, user_id):
            current = self.draft_store.get(draft_id)
            reason = (
                "Draft reply is empty"
                if current.status == DraftStatus.PENDING.value
                else f"Draft is {current.status}, not PENDING"
            )
            return {"approved": False, "error": reason, "draft": current.to_dict(), "job": None}

        job = self.queue.enqueue(
            f"post-{draft_id}",
            JobType.POST_REPLY.value,
            {"draftId": draft_id, "userId": user_id},
        )
        return {
            "approved": True,
            "error": None,
            "draft": self.draft_store.get(draft_id).to_dict(),
            "job": job.to_dict(),
        }

    # ----- Jobs -----

    def enqueue_job(self, job: dict[str, Any]) -> dict[str, Any]:
        """
        Enqueue ``{"id", "type", "payload"}``.

        Raises ValueError for a missing id or an unknown type.
        """
        job_id = job.get("id")
        job_type = job.get("type")
        if not job_id:
            raise ValueError("Job id is required")
        if job_type not in {t.value for t in JobType}:
            raise ValueError(f"Unknown job type: {job_type!r}")
        return self.queue.enqueue(job_id, job_type, job.get("payload") or {}).to_dict()

    def list_jobs(self, status: Optional[str] = None, limit: Optional[int] = None) -> list[dict[str, Any]]:
        return [j.to_dict() for j in self.queue.list(status=status, limit=limit)]

    def get_job(self, job_id: str) -> Optional[dict[str, Any]]:
        job = self.queue.get(job_id)
        return job.to_dict() if job is not None else None

    def run_pending_jobs(self, max_jobs: Optional[int] = None) -> dict[str, Any]:
        """Execute queued jobs synchronously in this thread."""
        executed = self.worker.run_until_empty(max_jobs)
        return {"executed": len(executed), "jobs": [self.get_job(job_id) for job_id in executed]}

    # ----- Lifecycle -----

    def start(self) -> None:
        if self.scheduler is not None:
            self.scheduler.start()
        else:
            self.worker.start()

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
        else:
            self.worker.stop()


def build_service(settings: Optional[Settings] = None, db_path: Optional[Path] = None) -> ReplyBotService:
    """Wire the production service: real providers, SQLite stores, one limiter per API."""
    settings = settings or get_settings()
    db_path = db_path or settings.db_path
    initialize_database(db_path)

    limiters = RateLimiters.from_settings(settings)
    http = ExternalHttpClient(settings.http)
    oauth = GoogleOAuthTokenProvider(settings.credentials, http)
    youtube = YouTubeDataClient(
        http, limiters.youtube, oauth, settings.transcripts, settings.rate_limit, settings.credentials
    )
    writer = YouTubeWriteClient(oauth, http, limiters.youtube, settings.transcripts, settings.rate_limit)

    if settings.embedding.provider == "openai":
        embedder = OpenAIEmbedder(
            rate_limiter=limiters.embeddings,
            embedding_settings=settings.embedding,
            rate_limit_settings=settings.rate_limit,
        )
    else:
        embedder = SentenceTransformerEmbedder(settings.embedding)
    completion = OpenAICompletionProvider(
        rate_limiter=limiters.completions,
        generation_settings=settings.generation,
        rate_limit_settings=settings.rate_limit,
    )

    sources = []
    youtube_enabled = bool(settings.credentials.youtube_api_key) or oauth.configured
    if youtube_enabled:
        sources.append(CaptionsSource(youtube, settings.transcripts))
    else:
        logger.info("No YouTube credentials configured; captions source disabled")
    sources.append(ArchiveMirrorSource(http, settings.transcripts))
    sources.append(AITranscriptionSource(OpenAIAudioTranscriber(transcript_settings=settings.transcripts), settings.transcripts))

    comment_store = CommentStore(db_path)
    draft_store = DraftStore(db_path)
    index_store = VideoIndexStore(db_path)
    chunk_store = ChunkStore(db_path)

    orchestrator = VideoIndexOrchestrator(
        resolver=TranscriptResolver(sources),
        pipeline=IngestionPipeline(embedder, chunk_store, settings=settings.ingestion),
        index_store=index_store,
        comment_store=comment_store,
        metadata_client=youtube if youtube_enabled else None,
        settings=settings.indexing,
        ingestion_settings=settings.ingestion,
    )
    generator = DraftGenerator(
        retriever=ChunkRetriever(embedder, chunk_store, settings.generation),
        completion=completion,
        comment_store=comment_store,
        draft_store=draft_store,
        index_store=index_store,
        settings=settings.generation,
    )

    queue = JobQueue()
    worker = Worker(queue, settings=settings.jobs)
    worker.register(JobType.POST_REPLY.value, PostReplyHandler(writer, draft_store, comment_store))

    scheduler = Scheduler(
        orchestrator.ensure_missing,
        queue,
        limiters.all(),
        worker=worker,
        job_settings=settings.jobs,
        settings=settings.scheduler,
    )
    return ReplyBotService(
        orchestrator=orchestrator,
        generator=generator,
        queue=queue,
        worker=worker,
        draft_store=draft_store,
        index_store=index_store,
        limiters=limiters,
        scheduler=scheduler,
    )
