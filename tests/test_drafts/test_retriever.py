"""Tests for chunk retrieval by cosine similarity."""

from __future__ import annotations

import pytest

from replybot.config.settings import GenerationSettings, IngestionSettings
from replybot.drafts.retriever import ChunkRetriever
from replybot.ingestion.pipeline import IngestionPipeline
from tests.fakes import HashingEmbedder


@pytest.fixture
def wide_embedder():
    return HashingEmbedder(dim=1024)


@pytest.fixture
def indexed(chunk_store, video_index_store, wide_embedder):
    pipeline = IngestionPipeline(wide_embedder, chunk_store, settings=IngestionSettings())
    for video_id, text in (("V1", "Hello world"), ("V2", "The CPU is a Ryzen")):
        video_index_store.mark_processing(video_id)
        pipeline.ingest(text, {"videoId": video_id})
        video_index_store.mark_indexed(video_id, "archive", "[]", "{}")
    return chunk_store


class TestChunkRetriever:
    def test_scoped_to_video(self, indexed, wide_embedder):
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings())
        results = retriever.retrieve("What CPU?", video_id="V1")
        assert [r.text for r in results] == ["Hello world"]
        assert results[0].video_id == "V1"
        assert 0.2 <= results[0].score < 1.0

    def test_unscoped_ranks_best_first(self, indexed, wide_embedder):
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings())
        results = retriever.retrieve("What CPU?")
        assert [r.video_id for r in results] == ["V2", "V1"]
        assert results[0].score > results[1].score

    def test_min_score_filters(self, indexed, wide_embedder):
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings(min_score=0.9))
        assert retriever.retrieve("What CPU?") == []

    def test_top_k(self, indexed, wide_embedder):
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings())
        assert len(retriever.retrieve("What CPU?", top_k=1)) == 1

    def test_no_chunks_for_video(self, indexed, wide_embedder):
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings())
        assert retriever.retrieve("What CPU?", video_id="V404") == []

    def test_blank_query(self, indexed, wide_embedder):
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings())
        assert retriever.retrieve("   ") == []

    def test_other_embedding_dimension_is_ignored(self, indexed):
        retriever = ChunkRetriever(HashingEmbedder(dim=32), indexed, GenerationSettings())
        assert retriever.retrieve("What CPU?") == []

    def test_to_dict(self, indexed, wide_embedder):
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings())
        payload = retriever.retrieve("What CPU?", video_id="V1")[0].to_dict()
        assert set(payload) == {"videoId", "chunkIndex", "text", "score"}
        assert payload["chunkIndex"] == 0

    def test_chunks_of_unindexed_videos_are_ignored(self, indexed, video_index_store, wide_embedder):
        video_index_store.mark_failed("V2", "Embedding failed for all 1 chunks")
        retriever = ChunkRetriever(wide_embedder, indexed, GenerationSettings())

        assert [r.video_id for r in retriever.retrieve("What CPU?")] == ["V1"]
        assert retriever.retrieve("What CPU?", video_id="V2") == []

        video_index_store.mark_processing("V1")
        assert retriever.retrieve("What CPU?") == []
