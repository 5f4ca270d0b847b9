"""
CRUD operations for the comments table.

Comments are ingested elsewhere and never modified here; the only
writes are idempotent inserts.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from replybot.storage.connection import get_connection, transaction
from replybot.storage.models import Comment

logger = logging.getLogger(__name__)


class CommentStore:
    """Read-mostly interface for the comments table."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self._db_path = db_path

    @property
    def _conn(self):
        return get_connection(self._db_path)

    def _row_to_comment(self, row) -> Comment:
        return Comment(
            id=row["id"],
            comment_id=row["comment_id"],
            video_id=row["video_id"],
            text=row["text"],
            author_name=row["author_name"],
            published_at=row["published_at"],
            like_count=row["like_count"],
            created_at=row["created_at"],
        )

    def insert(self, comment: Comment) -> bool:
        """Insert a comment. Returns False if its YouTube comment id is already stored."""
        return self.insert_many([comment]) == 1

    def insert_many(self, comments: list[Comment]) -> int:
        sql = """
            INSERT OR IGNORE INTO comments
                (id, comment_id, video_id, text, author_name, published_at, like_count, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """
        inserted = 0
        with transaction(self._db_path):
            for c in comments:
                cursor = self._conn.execute(
                    sql,
                    (
                        c.id,
                        c.comment_id,
                        c.video_id,
                        c.text,
                        c.author_name,
                        c.published_at,
                        c.like_count,
                        c.created_at,
                    ),
                )
                inserted += cursor.rowcount
        if inserted:
            logger.info("Inserted %d new comments (%d duplicates)", inserted, len(comments) - inserted)
        return inserted

    def get(self, comment_id: str) -> Optional[Comment]:
        """Fetch by internal id."""
        row = self._conn.execute("SELECT * FROM comments WHERE id = ?", (comment_id,)).fetchone()
        return self._row_to_comment(row) if row else None

    def get_for_video(self, video_id: str) -> list[Comment]:
        rows = self._conn.execute(
            "SELECT * FROM comments WHERE video_id = ? ORDER BY created_at", (video_id,)
        ).fetchall()
        return [self._row_to_comment(r) for r in rows]

    def video_ids(self) -> list[str]:
        """Distinct videos referenced by at least one comment."""
        rows = self._conn.execute(
            "SELECT DISTINCT video_id FROM comments ORDER BY video_id"
        ).fetchall()
        return [r["video_id"] for r in rows]

    def list_needing_draft(self, limit: Optional[int] = None) -> list[Comment]:
        """Comments with no draft, or whose draft reply is still empty."""
        sql = """
            SELECT c.* FROM comments c
            LEFT JOIN drafts d ON d.comment_id = c.id
            WHERE d.id IS NULL OR (d.reply = '' AND d.status = 'PENDING')
            ORDER BY c.created_at
        """
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_comment(r) for r in rows]

    def count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) AS cnt FROM comments").fetchone()
        return row["cnt"]
