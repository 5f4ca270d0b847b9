"""
FAISS-backed vector index over transcript chunks.

Built in memory from the embeddings stored in ``transcript_chunks``; the
SQLite table is the source of truth, so the index is never persisted.
"""

from __future__ import annotations

import logging
from typing import Hashable, Optional

import faiss
import numpy as np

logger = logging.getLogger(__name__)


class VectorIndex:
    """Cosine-similarity index: inner product over unit vectors."""

    def __init__(self) -> None:
        self._ids: list[Hashable] = []
        self._index: Optional[faiss.Index] = None
        self._dim = 0

    @property
    def size(self) -> int:
        return len(self._ids)

    @property
    def dim(self) -> int:
        return self._dim

    def build(self, ids: list[Hashable], embeddings: np.ndarray) -> None:
        """
        Index *embeddings* (shape ``(n, dim)``), row i labelled ``ids[i]``.

        Raises ValueError when the row count and id count disagree.
        """
        if len(ids) != embeddings.shape[0]:
            raise ValueError(f"{len(ids)} ids for {embeddings.shape[0]} embeddings")
        if len(ids) == 0:
            self._ids, self._index, self._dim = [], None, 0
            return

        self._ids = list(ids)
        self._dim = embeddings.shape[1]

        norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        normed = np.ascontiguousarray(embeddings / norms, dtype=np.float32)

        self._index = faiss.IndexFlatIP(self._dim)
        self._index.add(normed)
        logger.debug("Built FAISS index: %d vectors (dim=%d)", self.size, self._dim)

    def search(self, query_embedding: np.ndarray, top_k: int = 4) -> list[tuple[Hashable, float]]:
        """``[(id, cosine_similarity), ...]`` for the *top_k* nearest rows, best first."""
        if self._index is None or self.size == 0 or top_k <= 0:
            return []

        qvec = np.asarray(query_embedding, dtype=np.float32).reshape(1, -1)
        if qvec.shape[1] != self._dim:
            raise ValueError(f"Query dimension {qvec.shape[1]} does not match index dimension {self._dim}")
        norm = np.linalg.norm(qvec)
        if norm > 0:
            qvec = qvec / norm

        k = min(top_k, self.size)
        scores, indices = self._index.search(np.ascontiguousarray(qvec), k)

        return [
            (self._ids[idx], float(score))
            for score, idx in zip(scores[0], indices[0])
            if idx >= 0
        ]
