"""Tests for retrieval-augmented draft generation."""

from __future__ import annotations

import pytest

from replybot.config.settings import GenerationSettings
from replybot.drafts.generator import DraftGenerator
from replybot.drafts.retriever import ChunkRetriever
from replybot.errors import ConfigurationError
from replybot.storage.models import DraftStatus
from tests.conftest import make_comment
from tests.fakes import FakeCompletion, HashingEmbedder


class RaisingCompletion:
    def complete(self, messages, model=None, max_tokens=None, json_mode=False):
        raise ConfigurationError("Missing required credential: openai_api_key")


@pytest.fixture
def indexed_v1(pipeline, video_index_store):
    video_index_store.mark_processing("V1")
    video_index_store.set_title("V1", "Budget gaming PC build")
    pipeline.ingest("Hello world", {"videoId": "V1"})
    video_index_store.mark_indexed("V1", "archive", "[]", "{}")
    return "V1"


def _generator(embedder, stores, completion=None, settings=None):
    chunk_store, comment_store, draft_store, video_index_store = stores
    settings = settings or GenerationSettings()
    return DraftGenerator(
        ChunkRetriever(embedder, chunk_store, settings),
        completion or FakeCompletion(),
        comment_store=comment_store,
        draft_store=draft_store,
        index_store=video_index_store,
        settings=settings,
    )


@pytest.fixture
def stores(chunk_store, comment_store, draft_store, video_index_store):
    return chunk_store, comment_store, draft_store, video_index_store


class TestGenerateDrafts:
    def test_generates_pending_draft(self, embedder, stores, indexed_v1, comment_store, draft_store):
        comment = make_comment("What CPU?", video_id=indexed_v1)
        comment_store.insert(comment)
        completion = FakeCompletion("It is a Ryzen 7.")

        summary = _generator(embedder, stores, completion).generate_drafts_for_pending_comments()

        assert summary["processed"] == 1
        assert summary["generated"] == 1
        result = summary["results"][0]
        draft = draft_store.get(result["draftId"])
        assert draft.comment_id == comment.id
        assert draft.reply == "It is a Ryzen 7."
        assert draft.status == DraftStatus.PENDING.value
        assert draft.relevance_score == pytest.approx(result["contexts"][0]["score"], abs=1e-4)

        call = completion.calls[0]
        assert call["json_mode"] is True
        assert call["model"] == "gpt-4o-mini"
        user = call["messages"][1]["content"]
        assert "Hello world" in user
        assert "Budget gaming PC build" in user

    def test_no_context_fails_without_draft(self, embedder, stores, comment_store, draft_store):
        comment = make_comment("What CPU?", video_id="V-unindexed")
        comment_store.insert(comment)

        summary = _generator(embedder, stores).generate_drafts_for_pending_comments()

        assert summary["failed"] == 1
        assert summary["results"][0]["error"] == "No relevant transcript context found"
        assert draft_store.get_by_comment(comment.id) is None

    def test_one_failure_does_not_stop_run(self, embedder, stores, indexed_v1, comment_store):
        comment_store.insert(make_comment("What CPU? broken", video_id=indexed_v1))
        comment_store.insert(make_comment("Which GPU?", video_id=indexed_v1))

        summary = _generator(embedder, stores, FakeCompletion(fail_on="broken")).generate_drafts_for_pending_comments()

        assert summary["processed"] == 2
        assert summary["generated"] == 1
        assert summary["failed"] == 1
        failed = [r for r in summary["results"] if r["status"] == "failed"][0]
        assert "timed out" in failed["error"]

    def test_invalid_completion_is_failed(self, embedder, stores, indexed_v1, comment_store):
        comment_store.insert(make_comment("What CPU?", video_id=indexed_v1))

        class Garbage:
            def complete(self, messages, model=None, max_tokens=None, json_mode=False):
                return "Sure! Here is a reply."

        summary = _generator(embedder, stores, Garbage()).generate_drafts_for_pending_comments()
        assert summary["failed"] == 1
        assert "JSON" in summary["results"][0]["error"]

    def test_configuration_error_propagates(self, embedder, stores, indexed_v1, comment_store):
        comment_store.insert(make_comment("What CPU?", video_id=indexed_v1))
        with pytest.raises(ConfigurationError):
            _generator(embedder, stores, RaisingCompletion()).generate_drafts_for_pending_comments()

    def test_already_drafted_comments_are_skipped(self, embedder, stores, indexed_v1, comment_store):
        comment_store.insert(make_comment("What CPU?", video_id=indexed_v1))
        generator = _generator(embedder, stores)
        generator.generate_drafts_for_pending_comments()

        assert generator.generate_drafts_for_pending_comments()["processed"] == 0

    def test_limit(self, embedder, stores, indexed_v1, comment_store):
        for _ in range(3):
            comment_store.insert(make_comment("What CPU?", video_id=indexed_v1))
        summary = _generator(embedder, stores).generate_drafts_for_pending_comments(limit=2)
        assert summary["processed"] == 2

    def test_plain_text_mode(self, embedder, stores, indexed_v1, comment_store, draft_store):
        comment = make_comment("What CPU?", video_id=indexed_v1)
        comment_store.insert(comment)
        completion = FakeCompletion("Plain reply")

        _generator(embedder, stores, completion, GenerationSettings(json_mode=False)).generate_drafts_for_pending_comments()

        assert completion.calls[0]["json_mode"] is False
        assert draft_store.get_by_comment(comment.id).reply == "Plain reply"


class CrashingEmbedder(HashingEmbedder):
    def embed(self, text):
        if "boom" in text:
            raise RuntimeError("CUDA out of memory")
        return super().embed(text)


class TestRetrievalScope:
    def test_failed_video_chunks_do_not_ground_drafts(self, embedder, stores, pipeline, comment_store, video_index_store):
        video_index_store.mark_processing("V2")
        pipeline.ingest("The CPU is a Ryzen 7", {"videoId": "V2"})
        video_index_store.mark_failed("V2", "Transcript fetch failed (archive): 500")
        comment = make_comment("What CPU?", video_id="V2")
        comment_store.insert(comment)

        summary = _generator(embedder, stores).generate_drafts_for_pending_comments()

        assert summary["generated"] == 0
        assert summary["results"][0]["error"] == "No relevant transcript context found"

    def test_unindexed_video_falls_back_to_other_indexed_videos(self, embedder, stores, indexed_v1, comment_store):
        comment_store.insert(make_comment("What CPU?", video_id="V-new"))
        completion = FakeCompletion()

        summary = _generator(embedder, stores, completion).generate_drafts_for_pending_comments()

        assert summary["generated"] == 1
        assert summary["results"][0]["contexts"][0]["videoId"] == "V1"
        assert "Budget gaming PC build" not in completion.calls[0]["messages"][1]["content"]


class TestUnexpectedErrors:
    def test_unexpected_error_is_recorded_and_run_continues(self, stores, indexed_v1, comment_store, draft_store):
        crashing = make_comment("boom?", video_id=indexed_v1)
        healthy = make_comment("What CPU?", video_id=indexed_v1)
        comment_store.insert(crashing)
        comment_store.insert(healthy)

        summary = _generator(CrashingEmbedder(), stores).generate_drafts_for_pending_comments()

        assert summary["processed"] == 2
        assert summary["generated"] == 1
        assert summary["failed"] == 1
        by_comment = {r["commentId"]: r for r in summary["results"]}
        assert by_comment[crashing.id]["error"] == "RuntimeError: CUDA out of memory"
        assert draft_store.get_by_comment(healthy.id) is not None
        assert draft_store.get_by_comment(crashing.id) is None
