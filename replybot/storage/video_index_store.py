"""
CRUD operations for the video_indexes table.

Each method is one statement (or one transaction) so a status
transition is atomic per record.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from replybot.storage.connection import get_connection, transaction
from replybot.storage.models import IndexStatus, VideoIndex, utc_now_iso

logger = logging.getLogger(__name__)


class VideoIndexStore:
    """CRUD interface for the video_indexes table."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self._db_path = db_path

    @property
    def _conn(self):
        return get_connection(self._db_path)

    def _row_to_index(self, row) -> VideoIndex:
        return VideoIndex(
            video_id=row["video_id"],
            title=row["title"],
            status=row["status"],
            source=row["source"],
            chunks_json=row["chunks_json"],
            summary_json=row["summary_json"],
            error_message=row["error_message"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get(self, video_id: str) -> Optional[VideoIndex]:
        row = self._conn.execute(
            "SELECT * FROM video_indexes WHERE video_id = ?", (video_id,)
        ).fetchone()
        return self._row_to_index(row) if row else None

    def create_pending(self, video_id: str, title: str = "") -> bool:
        """Register a video with no index yet. Returns False if a record already exists."""
        now = utc_now_iso()
        with transaction(self._db_path):
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO video_indexes (video_id, title, status, created_at, updated_at)
                VALUES (?, ?, 'PENDING', ?, ?)
                """,
                (video_id, title, now, now),
            )
        return cursor.rowcount > 0

    def mark_processing(self, video_id: str) -> VideoIndex:
        """Create or move a record to PROCESSING, clearing any previous error."""
        now = utc_now_iso()
        with transaction(self._db_path):
            self._conn.execute(
                """
                INSERT INTO video_indexes (video_id, status, created_at, updated_at)
                VALUES (?, 'PROCESSING', ?, ?)
                ON CONFLICT(video_id) DO UPDATE SET
                    status = 'PROCESSING', error_message = NULL, updated_at = excluded.updated_at
                """,
                (video_id, now, now),
            )
        logger.info("Video %s -> PROCESSING", video_id)
        return self.get(video_id)

    def set_title(self, video_id: str, title: str) -> None:
        with transaction(self._db_path):
            self._conn.execute(
                "UPDATE video_indexes SET title = ?, updated_at = ? WHERE video_id = ?",
                (title, utc_now_iso(), video_id),
            )

    def mark_indexed(
        self,
        video_id: str,
        source: str,
        chunks_json: str,
        summary_json: str,
        error_message: Optional[str] = None,
    ) -> VideoIndex:
        with transaction(self._db_path):
            self._conn.execute(
                """
                UPDATE video_indexes
                SET status = 'INDEXED', source = ?, chunks_json = ?, summary_json = ?,
                    error_message = ?, updated_at = ?
                WHERE video_id = ?
                """,
                (source, chunks_json, summary_json, error_message, utc_now_iso(), video_id),
            )
        logger.info("Video %s -> INDEXED (source=%s)", video_id, source)
        return self.get(video_id)

    def mark_failed(self, video_id: str, error_message: str) -> VideoIndex:
        with transaction(self._db_path):
            self._conn.execute(
                """
                UPDATE video_indexes
                SET status = 'FAILED', error_message = ?, updated_at = ?
                WHERE video_id = ?
                """,
                (error_message, utc_now_iso(), video_id),
            )
        logger.warning("Video %s -> FAILED: %s", video_id, error_message)
        return self.get(video_id)

    def get_by_status(self, statuses: Iterable[str]) -> list[VideoIndex]:
        values = [IndexStatus(s).value for s in statuses]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        rows = self._conn.execute(
            f"SELECT * FROM video_indexes WHERE status IN ({placeholders}) ORDER BY created_at",
            values,
        ).fetchall()
        return [self._row_to_index(r) for r in rows]

    def list(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> list[VideoIndex]:
        if status:
            rows = self._conn.execute(
                "SELECT * FROM video_indexes WHERE status = ? ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (IndexStatus(status).value, limit, offset),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM video_indexes ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        return [self._row_to_index(r) for r in rows]

    def count_by_status(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT status, COUNT(*) AS cnt FROM video_indexes GROUP BY status"
        ).fetchall()
        return {r["status"]: r["cnt"] for r in rows}

    def recover_stale_processing(self, max_age_seconds: int = 3600) -> int:
        """
        Move records stuck in PROCESSING for longer than *max_age_seconds* to FAILED.

        Handles a process that died mid-index; the FAILED record is picked up
        again by the next ensure_missing run.
        """
        cutoff = (datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)).isoformat()
        with transaction(self._db_path):
            cursor = self._conn.execute(
                """
                UPDATE video_indexes
                SET status = 'FAILED', error_message = 'indexing interrupted', updated_at = ?
                WHERE status = 'PROCESSING' AND updated_at < ?
                """,
                (utc_now_iso(), cutoff),
            )
        count = cursor.rowcount
        if count > 0:
            logger.warning("Recovered %d stale PROCESSING video indexes", count)
        return count
