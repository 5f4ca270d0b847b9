"""
Shared test fixtures for the replybot test suite.

Every test gets a fresh SQLite file under pytest's tmp_path with the
schema already initialized, plus stores bound to it.
"""

from __future__ import annotations

import uuid
from pathlib import Path

import pytest

from replybot.config.settings import (
    GenerationSettings,
    IndexingSettings,
    IngestionSettings,
    JobSettings,
)
from replybot.drafts.generator import DraftGenerator
from replybot.drafts.retriever import ChunkRetriever
from replybot.indexing.orchestrator import VideoIndexOrchestrator
from replybot.ingestion.pipeline import IngestionPipeline
from replybot.jobs.handlers import PostReplyHandler
from replybot.jobs.queue import JobQueue, JobType
from replybot.jobs.worker import Worker
from replybot.service import ReplyBotService
from replybot.storage.chunk_store import ChunkStore
from replybot.storage.comment_store import CommentStore
from replybot.storage.connection import close_connection, get_connection
from replybot.storage.draft_store import DraftStore
from replybot.storage.models import Comment
from replybot.storage.schema import initialize_database
from replybot.storage.video_index_store import VideoIndexStore
from replybot.transcripts.resolver import TranscriptResolver
from replybot.transcripts.sources import FetchResult
from tests.fakes import FakeCompletion, FakeSource, FakeWriter, HashingEmbedder


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Temporary SQLite database path, removed with tmp_path."""
    return tmp_path / "test_replybot.db"


@pytest.fixture
def db(db_path: Path):
    """
    Provide an initialized database connection.

    Creates all tables, yields the connection, then closes it.
    """
    initialize_database(db_path)
    conn = get_connection(db_path)
    yield conn
    close_connection(db_path)


@pytest.fixture
def comment_store(db, db_path: Path) -> CommentStore:
    return CommentStore(db_path)


@pytest.fixture
def draft_store(db, db_path: Path) -> DraftStore:
    return DraftStore(db_path)


@pytest.fixture
def video_index_store(db, db_path: Path) -> VideoIndexStore:
    return VideoIndexStore(db_path)


@pytest.fixture
def chunk_store(db, db_path: Path) -> ChunkStore:
    return ChunkStore(db_path)


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def pipeline(embedder, chunk_store) -> IngestionPipeline:
    return IngestionPipeline(embedder, chunk_store, settings=IngestionSettings())


# ---------------------------------------------------------------------------
# Sample data factories
# ---------------------------------------------------------------------------


def make_comment(
    text: str = "What CPU is used in this build?",
    video_id: str = "V1",
    **kwargs,
) -> Comment:
    """Create a Comment with sensible defaults. Override any field via kwargs."""
    suffix = uuid.uuid4().hex[:8]
    defaults = dict(
        id=f"c-{suffix}",
        comment_id=f"Ugx{suffix}",
        video_id=video_id,
        text=text,
        author_name="viewer",
        published_at="2025-01-01T00:00:00+00:00",
        like_count=0,
    )
    defaults.update(kwargs)
    return Comment(**defaults)


def make_service(
    db_path: Path,
    sources=None,
    embedder=None,
    completion=None,
    writer=None,
) -> ReplyBotService:
    """
    Wire a ReplyBotService over *db_path* with in-memory fakes.

    Defaults: captions unavailable, archive mirror has "Hello world" for V1,
    AI transcription unavailable.
    """
    if sources is None:
        sources = [
            FakeSource("captions"),
            FakeSource("archive", {"V1": FetchResult.found("Hello world", "archive")}),
            FakeSource("ai"),
        ]
    embedder = embedder or HashingEmbedder()
    completion = completion or FakeCompletion()
    writer = writer or FakeWriter()

    comment_store = CommentStore(db_path)
    draft_store = DraftStore(db_path)
    index_store = VideoIndexStore(db_path)
    chunk_store = ChunkStore(db_path)
    generation = GenerationSettings()

    orchestrator = VideoIndexOrchestrator(
        TranscriptResolver(sources),
        IngestionPipeline(embedder, chunk_store, settings=IngestionSettings()),
        index_store=index_store,
        comment_store=comment_store,
        settings=IndexingSettings(max_concurrency=1),
        ingestion_settings=IngestionSettings(),
    )
    generator = DraftGenerator(
        ChunkRetriever(embedder, chunk_store, generation),
        completion,
        comment_store=comment_store,
        draft_store=draft_store,
        index_store=index_store,
        settings=generation,
    )
    queue = JobQueue()
    worker = Worker(queue, settings=JobSettings(poll_interval=0.01))
    worker.register(JobType.POST_REPLY.value, PostReplyHandler(writer, draft_store, comment_store))
    return ReplyBotService(
        orchestrator=orchestrator,
        generator=generator,
        queue=queue,
        worker=worker,
        draft_store=draft_store,
        index_store=index_store,
    )
