"""
Data models for the storage layer.

These are plain dataclasses, no ORM. They represent rows in SQLite
tables and are the transport format between storage and the rest of
the system. Every field maps 1:1 to a database column.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now_iso() -> str:
    """ISO 8601 timestamp in UTC, used for created/updated columns."""
    return datetime.now(timezone.utc).isoformat()


class IndexStatus(str, Enum):
    """Lifecycle of a video's transcript index."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"


class DraftStatus(str, Enum):
    """Lifecycle of a generated reply."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    POSTED = "POSTED"


# ---------------------------------------------------------------------------
# Comments: ingested from YouTube, read-only to this system
# ---------------------------------------------------------------------------


@dataclass
class Comment:
    """A viewer comment. Stored in `comments`; never modified after insert."""

    # Internal primary key
    id: str

    # YouTube comment id, used as parentId when replying
    comment_id: str

    video_id: str

    text: str

    author_name: Optional[str] = None

    published_at: Optional[str] = None

    like_count: int = 0

    created_at: str = field(default_factory=utc_now_iso)


# ---------------------------------------------------------------------------
# Drafts: one per comment
# ---------------------------------------------------------------------------


@dataclass
class Draft:
    """A machine-generated reply awaiting approval and posting."""

    id: str

    # Foreign key to comments.id (unique: one draft per comment)
    comment_id: str

    # Empty until a reply has been generated
    reply: str = ""

    status: str = DraftStatus.PENDING.value

    # Cosine similarity of the best context chunk used to ground the reply
    relevance_score: Optional[float] = None

    approved_by_id: Optional[str] = None
    approved_at: Optional[str] = None

    posted_at: Optional[str] = None

    # Id YouTube assigned to the posted reply
    posted_comment_id: Optional[str] = None

    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "commentId": self.comment_id,
            "reply": self.reply,
            "status": self.status,
            "relevanceScore": self.relevance_score,
            "approvedById": self.approved_by_id,
            "approvedAt": self.approved_at,
            "postedAt": self.posted_at,
            "postedCommentId": self.posted_comment_id,
        }


# ---------------------------------------------------------------------------
# Video indexes: per-video processing state
# ---------------------------------------------------------------------------


@dataclass
class VideoIndex:
    """
    Indexing state for one video. Stored in `video_indexes`.

    chunks_json holds the ordered chunk texts; the embeddings themselves live
    in `transcript_chunks`. summary_json holds the derived summary.
    """

    video_id: str

    title: str = ""

    status: str = IndexStatus.PENDING.value

    # "captions", "archive" or "ai"
    source: Optional[str] = None

    chunks_json: str = "[]"

    summary_json: str = "{}"

    error_message: Optional[str] = None

    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def chunks(self) -> list[str]:
        return json.loads(self.chunks_json or "[]")

    @property
    def summary(self) -> dict[str, Any]:
        return json.loads(self.summary_json or "{}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "videoId": self.video_id,
            "title": self.title,
            "status": self.status,
            "source": self.source,
            "chunkCount": len(self.chunks),
            "summary": self.summary,
            "errorMessage": self.error_message,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ---------------------------------------------------------------------------
# Transcript chunks: the vector-searchable store
# ---------------------------------------------------------------------------


@dataclass
class TranscriptChunk:
    """One embedded transcript segment, keyed by (video_id, chunk_index)."""

    video_id: str

    chunk_index: int

    text: str

    token_count: int = 0

    # float32 vector bytes; None when embedding failed
    embedding: Optional[bytes] = None

    created_at: str = field(default_factory=utc_now_iso)
