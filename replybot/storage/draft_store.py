"""
CRUD operations for the drafts table.

Status moves forward only: PENDING -> APPROVED -> POSTED. Each
transition is a single conditional UPDATE, so a concurrent writer
that lost the race sees rowcount 0 instead of clobbering state.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional

from replybot.storage.connection import get_connection, transaction
from replybot.storage.models import Draft, DraftStatus, utc_now_iso

logger = logging.getLogger(__name__)


class DraftStore:
    """CRUD interface for the drafts table."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self._db_path = db_path

    @property
    def _conn(self):
        return get_connection(self._db_path)

    def _row_to_draft(self, row) -> Draft:
        return Draft(
            id=row["id"],
            comment_id=row["comment_id"],
            reply=row["reply"],
            status=row["status"],
            relevance_score=row["relevance_score"],
            approved_by_id=row["approved_by_id"],
            approved_at=row["approved_at"],
            posted_at=row["posted_at"],
            posted_comment_id=row["posted_comment_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get(self, draft_id: str) -> Optional[Draft]:
        row = self._conn.execute("SELECT * FROM drafts WHERE id = ?", (draft_id,)).fetchone()
        return self._row_to_draft(row) if row else None

    def get_by_comment(self, comment_id: str) -> Optional[Draft]:
        row = self._conn.execute(
            "SELECT * FROM drafts WHERE comment_id = ?", (comment_id,)
        ).fetchone()
        return self._row_to_draft(row) if row else None

    def save_generated(
        self,
        comment_id: str,
        reply: str,
        relevance_score: Optional[float] = None,
    ) -> Draft:
        """
        Store a generated reply for *comment_id* in PENDING status.

        Creates the draft if none exists. An existing draft is overwritten
        only while it is still PENDING; approved or posted drafts are left
        untouched.
        """
        now = utc_now_iso()
        with transaction(self._db_path):
            self._conn.execute(
                """
                INSERT INTO drafts (id, comment_id, reply, status, relevance_score, created_at, updated_at)
                VALUES (?, ?, ?, 'PENDING', ?, ?, ?)
                ON CONFLICT(comment_id) DO UPDATE SET
                    reply = excluded.reply,
                    relevance_score = excluded.relevance_score,
                    updated_at = excluded.updated_at
                WHERE drafts.status = 'PENDING'
                """,
                (str(uuid.uuid4()), comment_id, reply, relevance_score, now, now),
            )
        return self.get_by_comment(comment_id)

    def approve(self, draft_id: str, user_id: str) -> bool:
        """PENDING -> APPROVED with approver and time. Returns False if not PENDING."""
        now = utc_now_iso()
        with transaction(self._db_path):
            cursor = self._conn.execute(
                """
                UPDATE drafts
                SET status = 'APPROVED', approved_by_id = ?, approved_at = ?, updated_at = ?
                WHERE id = ? AND status = 'PENDING' AND reply != ''
                """,
                (user_id, now, now, draft_id),
            )
        if cursor.rowcount:
            logger.info("Draft %s -> APPROVED by %s", draft_id, user_id)
        return cursor.rowcount > 0

    def mark_posted(self, draft_id: str, posted_comment_id: str) -> bool:
        """APPROVED -> POSTED with the id YouTube assigned. Returns False if not APPROVED."""
        now = utc_now_iso()
        with transaction(self._db_path):
            cursor = self._conn.execute(
                """
                UPDATE drafts
                SET status = 'POSTED', posted_at = ?, posted_comment_id = ?, updated_at = ?
                WHERE id = ? AND status = 'APPROVED'
                """,
                (now, posted_comment_id, now, draft_id),
            )
        if cursor.rowcount:
            logger.info("Draft %s -> POSTED (%s)", draft_id, posted_comment_id)
        return cursor.rowcount > 0

    def list(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> list[Draft]:
        if status:
            rows = self._conn.execute(
                "SELECT * FROM drafts WHERE status = ? ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (DraftStatus(status).value, limit, offset),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM drafts ORDER BY updated_at DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        return [self._row_to_draft(r) for r in rows]
