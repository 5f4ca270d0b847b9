"""Vector retrieval of transcript chunks for a comment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from replybot.config.settings import GenerationSettings, get_settings
from replybot.indexing.vector_index import VectorIndex
from replybot.ingestion.pipeline import Embedder
from replybot.storage.chunk_store import ChunkStore, decode_embedding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedChunk:
    video_id: str
    chunk_index: int
    text: str
    score: float

    def to_dict(self) -> dict:
        return {
            "videoId": self.video_id,
            "chunkIndex": self.chunk_index,
            "text": self.text,
            "score": round(self.score, 4),
        }


class ChunkRetriever:
    """
    Embeds the query and ranks stored chunk embeddings by cosine similarity.

    The FAISS index is rebuilt per call from SQLite; per-video scopes hold
    a few dozen chunks, so this stays cheap and never serves stale vectors.
    """

    def __init__(
        self,
        embedder: Embedder,
        chunk_store: Optional[ChunkStore] = None,
        settings: Optional[GenerationSettings] = None,
    ) -> None:
        self._embedder = embedder
        self._chunk_store = chunk_store or ChunkStore()
        self._settings = settings or get_settings().generation

    def retrieve(
        self,
        query: str,
        video_id: Optional[str] = None,
        top_k: Optional[int] = None,
    ) -> list[RetrievedChunk]:
        """
        Top chunks of INDEXED videos for *query*, best first, limited to
        *video_id* when given.

        Chunks scoring below ``min_score`` are dropped, so the result may be
        empty even when chunks exist.
        """
        top_k = top_k or self._settings.top_k
        if not query or not query.strip():
            return []

        chunks = self._chunk_store.get_embedded(video_id, indexed_only=True)
        if not chunks:
            logger.debug("No embedded chunks for scope %s", video_id or "<all>")
            return []

        query_vec = np.asarray(self._embedder.embed(query), dtype=np.float32)

        # Vectors from a different embedding model cannot be compared
        usable = []
        vectors = []
        for chunk in chunks:
            vec = decode_embedding(chunk.embedding)
            if vec.shape[0] == query_vec.shape[0]:
                usable.append(chunk)
                vectors.append(vec)
        if not usable:
            logger.warning("No chunks match the query embedding dimension %d", query_vec.shape[0])
            return []

        index = VectorIndex()
        index.build(list(range(len(usable))), np.vstack(vectors))
        hits = index.search(query_vec, top_k=top_k)

        results = [
            RetrievedChunk(
                video_id=usable[i].video_id,
                chunk_index=usable[i].chunk_index,
                text=usable[i].text,
                score=score,
            )
            for i, score in hits
            if score >= self._settings.min_score
        ]
        logger.debug("Retrieved %d/%d chunks for query (scope=%s)", len(results), len(hits), video_id)
        return results
