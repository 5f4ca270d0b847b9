"""Local embedding provider backed by sentence-transformers."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from replybot.config.settings import EmbeddingSettings, get_settings
from replybot.errors import ExternalServiceError

logger = logging.getLogger(__name__)


def _get_encoder(model_name: str):
    """Lazy-load the sentence-transformer model (heavy import)."""
    from sentence_transformers import SentenceTransformer
    return SentenceTransformer(model_name)


class SentenceTransformerEmbedder:
    """Encodes text on this machine; no quota, no network after the model download."""

    def __init__(self, embedding_settings: Optional[EmbeddingSettings] = None) -> None:
        self._es = embedding_settings or get_settings().embedding
        self._encoder = None  # lazy
        self._lock = threading.Lock()

    def _ensure_encoder(self):
        with self._lock:
            if self._encoder is None:
                logger.info("Loading embedding model %s", self._es.local_model_name)
                self._encoder = _get_encoder(self._es.local_model_name)
        return self._encoder

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        try:
            encoder = self._ensure_encoder()
            vectors = encoder.encode(
                texts,
                batch_size=self._es.batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
            )
        except (RuntimeError, OSError, ValueError) as exc:
            raise ExternalServiceError(f"Local embedding failed: {exc}") from exc
        return np.asarray(vectors, dtype=np.float32)
