"""Tests for CommentStore."""

from __future__ import annotations

from tests.conftest import make_comment


class TestCommentStore:
    def test_insert_and_get(self, comment_store):
        comment = make_comment("What CPU?")
        assert comment_store.insert(comment)
        stored = comment_store.get(comment.id)
        assert stored.text == "What CPU?"
        assert stored.comment_id == comment.comment_id

    def test_duplicate_youtube_id_ignored(self, comment_store):
        first = make_comment(comment_id="Ugx-same")
        second = make_comment(comment_id="Ugx-same")
        assert comment_store.insert(first)
        assert not comment_store.insert(second)
        assert comment_store.count() == 1

    def test_insert_many(self, comment_store):
        comments = [make_comment() for _ in range(3)]
        assert comment_store.insert_many(comments + comments[:1]) == 3

    def test_get_for_video_and_video_ids(self, comment_store):
        comment_store.insert_many([make_comment(video_id="V2"), make_comment(video_id="V1"), make_comment(video_id="V1")])
        assert len(comment_store.get_for_video("V1")) == 2
        assert comment_store.video_ids() == ["V1", "V2"]

    def test_get_missing(self, comment_store):
        assert comment_store.get("nope") is None


class TestListNeedingDraft:
    def test_no_draft_empty_draft_and_generated(self, comment_store, draft_store):
        no_draft = make_comment("a")
        empty = make_comment("b")
        generated = make_comment("c")
        comment_store.insert_many([no_draft, empty, generated])
        draft_store.save_generated(empty.id, "")
        draft_store.save_generated(generated.id, "A reply")

        ids = {c.id for c in comment_store.list_needing_draft()}

        assert ids == {no_draft.id, empty.id}

    def test_limit(self, comment_store):
        comment_store.insert_many([make_comment() for _ in range(3)])
        assert len(comment_store.list_needing_draft(limit=2)) == 2
