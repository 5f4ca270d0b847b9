"""
Transcript ingestion: normalize -> chunk -> embed -> upsert.

Embedding failures are per chunk. A chunk whose embedding failed is
still stored (without a vector) and reported in ``IngestResult.failures``;
it is simply invisible to retrieval until the video is reindexed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import numpy as np

from replybot.config.settings import IngestionSettings, get_settings
from replybot.errors import ExternalServiceError
from replybot.ingestion.chunker import TextChunk, chunk_text
from replybot.ingestion.normalize import TranscriptNormalizer
from replybot.storage.chunk_store import ChunkStore, encode_embedding
from replybot.storage.models import TranscriptChunk

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    def embed(self, text: str) -> np.ndarray: ...

    def embed_batch(self, texts: list[str]) -> np.ndarray: ...


@dataclass
class IngestResult:
    video_id: str
    chunks_written: int = 0
    skipped: bool = False

    # [{"chunkIndex": i, "error": "..."}]
    failures: list[dict[str, Any]] = field(default_factory=list)

    # Chunk texts in order (what was written, or what already existed when skipped)
    chunks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "videoId": self.video_id,
            "chunksWritten": self.chunks_written,
            "skipped": self.skipped,
            "failures": list(self.failures),
        }


class IngestionPipeline:
    """Coordinates chunking, embedding and chunk upsert for one transcript."""

    def __init__(
        self,
        embedder: Embedder,
        chunk_store: Optional[ChunkStore] = None,
        normalizer: Optional[TranscriptNormalizer] = None,
        settings: Optional[IngestionSettings] = None,
    ) -> None:
        self._settings = settings or get_settings().ingestion
        self._embedder = embedder
        self._chunk_store = chunk_store or ChunkStore()
        self._normalizer = normalizer or TranscriptNormalizer(self._settings)

    def ingest(
        self,
        transcript: str,
        metadata: dict[str, Any],
        force_reindex: bool = False,
    ) -> IngestResult:
        """
        Ingest *transcript* for ``metadata["videoId"]``.

        Without *force_reindex*, a video that already has chunks is left
        alone. With it, prior chunks are replaced in one transaction.
        Raises ValueError if the transcript is empty after cleanup.
        """
        video_id = metadata["videoId"]

        if not force_reindex and self._chunk_store.has_chunks(video_id):
            existing = [c.text for c in self._chunk_store.get_for_video(video_id)]
            logger.info("Video %s already has %d chunks, skipping ingest", video_id, len(existing))
            return IngestResult(video_id=video_id, skipped=True, chunks=existing)

        text = self._normalizer.normalize(transcript)
        if not text:
            raise ValueError("Transcript text is empty after normalization")

        pieces = chunk_text(
            text,
            max_tokens=self._settings.chunk_max_tokens,
            overlap=self._settings.chunk_overlap_tokens,
        )
        vectors, failures = self._embed(video_id, pieces)

        records = [
            TranscriptChunk(
                video_id=video_id,
                chunk_index=piece.index,
                text=piece.text,
                token_count=piece.tokens,
                embedding=encode_embedding(vectors[piece.index]) if piece.index in vectors else None,
            )
            for piece in pieces
        ]
        if force_reindex:
            written = self._chunk_store.replace_for_video(video_id, records)
        else:
            written = self._chunk_store.upsert_many(records)

        logger.info(
            "Ingested video %s: %d chunks (%d embedding failures)",
            video_id, written, len(failures),
        )
        return IngestResult(
            video_id=video_id,
            chunks_written=written,
            failures=failures,
            chunks=[p.text for p in pieces],
        )

    def _embed(
        self,
        video_id: str,
        pieces: list[TextChunk],
    ) -> tuple[dict[int, np.ndarray], list[dict[str, Any]]]:
        """
        Embed all chunks, batched first and one at a time if the batch fails.

        Returns vectors by chunk index and the per-chunk failures.
        """
        if not pieces:
            return {}, []

        try:
            matrix = self._embedder.embed_batch([p.text for p in pieces])
            return {p.index: matrix[i] for i, p in enumerate(pieces)}, []
        except ExternalServiceError as exc:
            logger.warning("Batch embedding failed for %s, retrying per chunk: %s", video_id, exc)

        vectors: dict[int, np.ndarray] = {}
        failures: list[dict[str, Any]] = []
        for piece in pieces:
            try:
                vectors[piece.index] = self._embedder.embed(piece.text)
            except ExternalServiceError as exc:
                logger.warning("Embedding failed for %s chunk %d: %s", video_id, piece.index, exc)
                failures.append({"chunkIndex": piece.index, "error": str(exc)})
        return vectors, failures
