"""
SQLite schema definitions (DDL).

Tables:
    comments          : viewer comments (ingested elsewhere, read-mostly)
    drafts            : generated replies, one per comment
    video_indexes     : per-video indexing state
    transcript_chunks : embedded transcript segments for retrieval
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from replybot.storage.connection import get_connection, transaction

logger = logging.getLogger(__name__)

# Bump when adding migrations.
SCHEMA_VERSION = 1

_COMMENTS_DDL = """
CREATE TABLE IF NOT EXISTS comments (
    id              TEXT PRIMARY KEY,
    comment_id      TEXT UNIQUE NOT NULL,
    video_id        TEXT NOT NULL,
    text            TEXT NOT NULL,
    author_name     TEXT,
    published_at    TEXT,
    like_count      INTEGER DEFAULT 0,
    created_at      TEXT NOT NULL
);
"""

_DRAFTS_DDL = """
CREATE TABLE IF NOT EXISTS drafts (
    id                 TEXT PRIMARY KEY,
    comment_id         TEXT UNIQUE NOT NULL,
    reply              TEXT NOT NULL DEFAULT '',
    status             TEXT NOT NULL DEFAULT 'PENDING',
    relevance_score    REAL,
    approved_by_id     TEXT,
    approved_at        TEXT,
    posted_at          TEXT,
    posted_comment_id  TEXT,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL,
    FOREIGN KEY (comment_id) REFERENCES comments(id) ON DELETE CASCADE
);
"""

_VIDEO_INDEXES_DDL = """
CREATE TABLE IF NOT EXISTS video_indexes (
    video_id        TEXT PRIMARY KEY,
    title           TEXT NOT NULL DEFAULT '',
    status          TEXT NOT NULL DEFAULT 'PENDING',
    source          TEXT,
    chunks_json     TEXT NOT NULL DEFAULT '[]',
    summary_json    TEXT NOT NULL DEFAULT '{}',
    error_message   TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);
"""

_TRANSCRIPT_CHUNKS_DDL = """
CREATE TABLE IF NOT EXISTS transcript_chunks (
    video_id        TEXT NOT NULL,
    chunk_index     INTEGER NOT NULL,
    text            TEXT NOT NULL,
    token_count     INTEGER DEFAULT 0,
    embedding       BLOB,
    created_at      TEXT NOT NULL,
    PRIMARY KEY (video_id, chunk_index)
);
"""

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_comments_video ON comments(video_id);",
    "CREATE INDEX IF NOT EXISTS idx_drafts_status ON drafts(status);",
    "CREATE INDEX IF NOT EXISTS idx_video_indexes_status ON video_indexes(status);",
]


def initialize_database(db_path: Optional[Path] = None) -> None:
    """
    Create all tables and indexes if they don't exist.

    Safe to call multiple times.
    """
    conn = get_connection(db_path)

    logger.info("Initializing database schema (version %d)...", SCHEMA_VERSION)

    with transaction(db_path):
        conn.execute(_COMMENTS_DDL)
        conn.execute(_DRAFTS_DDL)
        conn.execute(_VIDEO_INDEXES_DDL)
        conn.execute(_TRANSCRIPT_CHUNKS_DDL)
        for idx_sql in _INDEXES:
            conn.execute(idx_sql)
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")


def get_schema_version(db_path: Optional[Path] = None) -> int:
    conn = get_connection(db_path)
    row = conn.execute("PRAGMA user_version").fetchone()
    return row[0] if row else 0
