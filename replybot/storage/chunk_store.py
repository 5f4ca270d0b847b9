"""
CRUD operations for the transcript_chunks table.

Embeddings are stored as raw float32 bytes; use ``encode_embedding`` and
``decode_embedding`` to convert.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np

from replybot.storage.connection import get_connection, transaction
from replybot.storage.models import TranscriptChunk

logger = logging.getLogger(__name__)


def encode_embedding(vector: np.ndarray) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def decode_embedding(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


class ChunkStore:
    """CRUD interface for the transcript_chunks table."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self._db_path = db_path

    @property
    def _conn(self):
        return get_connection(self._db_path)

    def _row_to_chunk(self, row) -> TranscriptChunk:
        return TranscriptChunk(
            video_id=row["video_id"],
            chunk_index=row["chunk_index"],
            text=row["text"],
            token_count=row["token_count"],
            embedding=row["embedding"],
            created_at=row["created_at"],
        )

    def count(self, video_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS cnt FROM transcript_chunks WHERE video_id = ?", (video_id,)
        ).fetchone()
        return row["cnt"]

    def has_chunks(self, video_id: str) -> bool:
        return self.count(video_id) > 0

    def upsert_many(self, chunks: list[TranscriptChunk]) -> int:
        """Insert or replace chunks keyed by (video_id, chunk_index). Returns rows written."""
        sql = """
            INSERT OR REPLACE INTO transcript_chunks
                (video_id, chunk_index, text, token_count, embedding, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """
        with transaction(self._db_path):
            self._conn.executemany(
                sql,
                [
                    (c.video_id, c.chunk_index, c.text, c.token_count, c.embedding, c.created_at)
                    for c in chunks
                ],
            )
        return len(chunks)

    def replace_for_video(self, video_id: str, chunks: list[TranscriptChunk]) -> int:
        """Atomically drop every chunk of *video_id* and write *chunks* in its place."""
        sql = """
            INSERT INTO transcript_chunks
                (video_id, chunk_index, text, token_count, embedding, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """
        with transaction(self._db_path):
            deleted = self._conn.execute(
                "DELETE FROM transcript_chunks WHERE video_id = ?", (video_id,)
            ).rowcount
            self._conn.executemany(
                sql,
                [
                    (c.video_id, c.chunk_index, c.text, c.token_count, c.embedding, c.created_at)
                    for c in chunks
                ],
            )
        if deleted:
            logger.info("Replaced %d old chunks for video %s", deleted, video_id)
        return len(chunks)

    def delete_for_video(self, video_id: str) -> int:
        with transaction(self._db_path):
            cursor = self._conn.execute(
                "DELETE FROM transcript_chunks WHERE video_id = ?", (video_id,)
            )
        return cursor.rowcount

    def get_for_video(self, video_id: str) -> list[TranscriptChunk]:
        rows = self._conn.execute(
            "SELECT * FROM transcript_chunks WHERE video_id = ? ORDER BY chunk_index",
            (video_id,),
        ).fetchall()
        return [self._row_to_chunk(r) for r in rows]

    def get_embedded(
        self,
        video_id: Optional[str] = None,
        indexed_only: bool = False,
    ) -> list[TranscriptChunk]:
        """
        Chunks that have an embedding, optionally for one video only.

        With *indexed_only*, chunks of videos whose index is not INDEXED
        (leftovers of a failed or in-flight run) are excluded.
        """
        sql = "SELECT c.* FROM transcript_chunks c"
        params: list[str] = []
        if indexed_only:
            sql += " JOIN video_indexes v ON v.video_id = c.video_id AND v.status = 'INDEXED'"
        sql += " WHERE c.embedding IS NOT NULL"
        if video_id is not None:
            sql += " AND c.video_id = ?"
            params.append(video_id)
        sql += " ORDER BY c.video_id, c.chunk_index"
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_chunk(r) for r in rows]
