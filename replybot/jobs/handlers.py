"""Job handlers. Each takes the job payload and returns a JSON-serializable result."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from replybot.errors import DataIntegrityError
from replybot.storage.comment_store import CommentStore
from replybot.storage.draft_store import DraftStore
from replybot.storage.models import DraftStatus

logger = logging.getLogger(__name__)


class ReplyWriter(Protocol):
    def post(self, parent_comment_id: str, text: str, acting_user_id: str) -> dict[str, str]: ...


class PostReplyHandler:
    """
    ``post-reply``: publish an approved draft as a reply to its comment.

    Payload: ``{"draftId": ..., "userId": ...}``.

    Safe to re-run: a draft that is already POSTED is skipped without
    calling the write API, so re-enqueuing the same job id cannot post twice.
    """

    def __init__(
        self,
        writer: ReplyWriter,
        draft_store: Optional[DraftStore] = None,
        comment_store: Optional[CommentStore] = None,
    ) -> None:
        self._writer = writer
        self._draft_store = draft_store or DraftStore()
        self._comment_store = comment_store or CommentStore()

    def __call__(self, payload: dict[str, Any]) -> dict[str, Any]:
        draft_id = payload.get("draftId")
        user_id = payload.get("userId") or ""
        if not draft_id:
            raise DataIntegrityError("post-reply payload has no draftId")

        draft = self._draft_store.get(draft_id)
        if draft is None:
            raise DataIntegrityError(f"Draft {draft_id} not found")

        if draft.status == DraftStatus.POSTED.value:
            logger.info("Draft %s already posted as %s, skipping", draft_id, draft.posted_comment_id)
            return {"draftId": draft_id, "postedCommentId": draft.posted_comment_id, "skipped": "already_posted"}

        if draft.status != DraftStatus.APPROVED.value:
            raise DataIntegrityError(f"Draft {draft_id} is {draft.status}, not APPROVED")
        if not draft.reply.strip():
            raise DataIntegrityError(f"Draft {draft_id} has an empty reply")

        comment = self._comment_store.get(draft.comment_id)
        if comment is None:
            raise DataIntegrityError(f"Comment {draft.comment_id} for draft {draft_id} not found")

        response = self._writer.post(comment.comment_id, draft.reply, user_id)
        posted_id = response["postedCommentId"]

        if not self._draft_store.mark_posted(draft_id, posted_id):
            # Posted, but the draft moved on meanwhile; keep the id in the job result
            logger.warning("Draft %s changed while posting; reply id %s not recorded", draft_id, posted_id)
            return {"draftId": draft_id, "postedCommentId": posted_id, "skipped": None, "recorded": False}

        return {"draftId": draft_id, "postedCommentId": posted_id, "skipped": None}
