"""Tests for DraftStore status transitions."""

from __future__ import annotations

import sqlite3

import pytest

from replybot.storage.models import DraftStatus
from tests.conftest import make_comment


@pytest.fixture
def comment(comment_store):
    c = make_comment()
    comment_store.insert(c)
    return c


class TestSaveGenerated:
    def test_creates_pending_draft(self, comment, draft_store):
        draft = draft_store.save_generated(comment.id, "Hello!", relevance_score=0.42)
        assert draft.status == DraftStatus.PENDING.value
        assert draft.reply == "Hello!"
        assert draft.relevance_score == pytest.approx(0.42)
        assert draft_store.get(draft.id) == draft

    def test_regenerating_keeps_draft_id(self, comment, draft_store):
        first = draft_store.save_generated(comment.id, "v1")
        second = draft_store.save_generated(comment.id, "v2")
        assert second.id == first.id
        assert second.reply == "v2"

    def test_approved_draft_not_overwritten(self, comment, draft_store):
        draft = draft_store.save_generated(comment.id, "v1")
        draft_store.approve(draft.id, "u-1")
        after = draft_store.save_generated(comment.id, "v2")
        assert after.reply == "v1"
        assert after.status == DraftStatus.APPROVED.value

    def test_unknown_comment_rejected(self, draft_store):
        with pytest.raises(sqlite3.IntegrityError):
            draft_store.save_generated("no-such-comment", "reply")


class TestTransitions:
    def test_approve(self, comment, draft_store):
        draft = draft_store.save_generated(comment.id, "Hello!")
        assert draft_store.approve(draft.id, "u-1")
        approved = draft_store.get(draft.id)
        assert approved.status == DraftStatus.APPROVED.value
        assert approved.approved_by_id == "u-1"
        assert approved.approved_at is not None

    def test_approve_twice(self, comment, draft_store):
        draft = draft_store.save_generated(comment.id, "Hello!")
        assert draft_store.approve(draft.id, "u-1")
        assert not draft_store.approve(draft.id, "u-2")
        assert draft_store.get(draft.id).approved_by_id == "u-1"

    def test_empty_reply_cannot_be_approved(self, comment, draft_store):
        draft = draft_store.save_generated(comment.id, "")
        assert not draft_store.approve(draft.id, "u-1")

    def test_mark_posted_requires_approved(self, comment, draft_store):
        draft = draft_store.save_generated(comment.id, "Hello!")
        assert not draft_store.mark_posted(draft.id, "r1")
        draft_store.approve(draft.id, "u-1")
        assert draft_store.mark_posted(draft.id, "r1")
        assert not draft_store.mark_posted(draft.id, "r2")
        posted = draft_store.get(draft.id)
        assert posted.status == DraftStatus.POSTED.value
        assert posted.posted_comment_id == "r1"

    def test_list_by_status(self, comment_store, draft_store):
        comments = [make_comment() for _ in range(2)]
        comment_store.insert_many(comments)
        d1 = draft_store.save_generated(comments[0].id, "one")
        draft_store.save_generated(comments[1].id, "two")
        draft_store.approve(d1.id, "u-1")

        assert [d.id for d in draft_store.list(status="APPROVED")] == [d1.id]
        assert len(draft_store.list()) == 2

    def test_to_dict(self, comment, draft_store):
        payload = draft_store.save_generated(comment.id, "Hello!").to_dict()
        assert payload["commentId"] == comment.id
        assert payload["status"] == "PENDING"
        assert payload["postedCommentId"] is None
