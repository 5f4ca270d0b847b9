"""Retrieval-augmented draft generation for comments awaiting a reply."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from replybot.config.settings import GenerationSettings, get_settings
from replybot.drafts.prompts import build_messages, parse_reply
from replybot.drafts.retriever import ChunkRetriever
from replybot.errors import ConfigurationError, ReplyBotError
from replybot.storage.comment_store import CommentStore
from replybot.storage.draft_store import DraftStore
from replybot.storage.models import Comment, IndexStatus
from replybot.storage.video_index_store import VideoIndexStore

logger = logging.getLogger(__name__)


class CompletionProvider(Protocol):
    def complete(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str: ...


class DraftGenerator:
    """Generates PENDING drafts, one comment at a time, keeping partial progress."""

    def __init__(
        self,
        retriever: ChunkRetriever,
        completion: CompletionProvider,
        comment_store: Optional[CommentStore] = None,
        draft_store: Optional[DraftStore] = None,
        index_store: Optional[VideoIndexStore] = None,
        settings: Optional[GenerationSettings] = None,
    ) -> None:
        self._retriever = retriever
        self._completion = completion
        self._comment_store = comment_store or CommentStore()
        self._draft_store = draft_store or DraftStore()
        self._index_store = index_store or VideoIndexStore()
        self._settings = settings or get_settings().generation

    def generate_drafts_for_pending_comments(self, limit: Optional[int] = None) -> dict[str, Any]:
        """
        Draft a reply for every comment without one (or with an empty one).

        A comment with no relevant context, or whose completion fails, is
        recorded as failed and the run moves on. Configuration errors stop
        the run.
        """
        comments = self._comment_store.list_needing_draft(limit)
        logger.info("Generating drafts for %d comments", len(comments))

        results = [self._generate_one(c) for c in comments]
        summary = {
            "processed": len(results),
            "generated": sum(1 for r in results if r["status"] == "generated"),
            "failed": sum(1 for r in results if r["status"] == "failed"),
            "results": results,
        }
        logger.info(
            "Draft generation finished: %d generated, %d failed",
            summary["generated"], summary["failed"],
        )
        return summary

    def _generate_one(self, comment: Comment) -> dict[str, Any]:
        try:
            return self.generate_for_comment(comment)
        except ConfigurationError:
            raise
        except (ReplyBotError, ValueError) as exc:
            logger.warning("Draft for comment %s failed: %s", comment.id, exc)
            return {"commentId": comment.id, "status": "failed", "draftId": None, "error": str(exc)}
        except Exception as exc:
            logger.exception("Draft for comment %s crashed", comment.id)
            return {
                "commentId": comment.id,
                "status": "failed",
                "draftId": None,
                "error": f"{type(exc).__name__}: {exc}",
            }

    def generate_for_comment(self, comment: Comment) -> dict[str, Any]:
        index = self._index_store.get(comment.video_id)
        video_indexed = index is not None and index.status == IndexStatus.INDEXED.value
        scope = comment.video_id if self._settings.scope_to_video and video_indexed else None
        contexts = self._retriever.retrieve(comment.text, video_id=scope, top_k=self._settings.top_k)
        if not contexts:
            logger.info("No relevant context for comment %s (video %s)", comment.id, comment.video_id)
            return {
                "commentId": comment.id,
                "status": "failed",
                "draftId": None,
                "error": "No relevant transcript context found",
            }

        messages = build_messages(
            comment.text,
            contexts,
            video_title=index.title if video_indexed else "",
            json_mode=self._settings.json_mode,
        )
        raw = self._completion.complete(
            messages,
            model=self._settings.chat_model,
            max_tokens=self._settings.max_tokens,
            json_mode=self._settings.json_mode,
        )
        reply = parse_reply(raw, json_mode=self._settings.json_mode)
        if not reply:
            raise ValueError("Completion returned an empty reply")

        draft = self._draft_store.save_generated(comment.id, reply, relevance_score=contexts[0].score)
        logger.info("Draft %s generated for comment %s", draft.id, comment.id)
        return {
            "commentId": comment.id,
            "status": "generated",
            "draftId": draft.id,
            "error": None,
            "contexts": [c.to_dict() for c in contexts],
        }
