"""OpenAI-backed embedding, completion and audio transcription providers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
from openai import OpenAI, OpenAIError

from replybot.clients.rate_limiter import RateLimiter, admit
from replybot.config.settings import (
    CredentialSettings,
    EmbeddingSettings,
    GenerationSettings,
    RateLimitSettings,
    TranscriptSettings,
    get_settings,
)
from replybot.errors import ExternalServiceError

logger = logging.getLogger(__name__)

EMBEDDINGS_QUOTA_KEY = "openai-embeddings"
COMPLETIONS_QUOTA_KEY = "openai-completions"


def _make_client(credentials: CredentialSettings) -> OpenAI:
    return OpenAI(api_key=credentials.require("openai_api_key"))


class OpenAIEmbedder:
    """Embedding provider using the OpenAI embeddings endpoint."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        rate_limiter: Optional[RateLimiter] = None,
        embedding_settings: Optional[EmbeddingSettings] = None,
        rate_limit_settings: Optional[RateLimitSettings] = None,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._credentials = settings.credentials
        self._limiter = rate_limiter
        self._es = embedding_settings or settings.embedding
        self._rl = rate_limit_settings or settings.rate_limit

    def _ensure_client(self) -> OpenAI:
        if self._client is None:
            self._client = _make_client(self._credentials)
        return self._client

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> np.ndarray:
        """Embed *texts* in order; returns a float32 array of shape (len(texts), dim)."""
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        client = self._ensure_client()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._es.batch_size):
            batch = texts[start:start + self._es.batch_size]
            admit(self._limiter, EMBEDDINGS_QUOTA_KEY, 1, self._rl.max_wait)
            try:
                response = client.embeddings.create(model=self._es.openai_model_name, input=batch)
            except OpenAIError as exc:
                raise ExternalServiceError(f"Embedding request failed: {exc}") from exc
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(item.embedding for item in ordered)
            logger.debug("Embedded %d/%d texts", start + len(batch), len(texts))

        return np.asarray(vectors, dtype=np.float32)


class OpenAICompletionProvider:
    """Chat completion provider used for drafting replies."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        rate_limiter: Optional[RateLimiter] = None,
        generation_settings: Optional[GenerationSettings] = None,
        rate_limit_settings: Optional[RateLimitSettings] = None,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._credentials = settings.credentials
        self._limiter = rate_limiter
        self._gs = generation_settings or settings.generation
        self._rl = rate_limit_settings or settings.rate_limit

    def complete(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str:
        if self._client is None:
            self._client = _make_client(self._credentials)

        params = {
            "model": model or self._gs.chat_model,
            "messages": messages,
            "max_tokens": max_tokens or self._gs.max_tokens,
            "temperature": self._gs.temperature,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        admit(self._limiter, COMPLETIONS_QUOTA_KEY, 1, self._rl.max_wait)
        try:
            response = self._client.chat.completions.create(**params)
        except OpenAIError as exc:
            raise ExternalServiceError(f"Completion request failed: {exc}") from exc

        content = response.choices[0].message.content or ""
        logger.debug("Completion returned %d chars (model=%s)", len(content), params["model"])
        return content


class OpenAIAudioTranscriber:
    """Speech-to-text for the last-resort transcript source."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        transcript_settings: Optional[TranscriptSettings] = None,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._credentials = settings.credentials
        self._ts = transcript_settings or settings.transcripts

    def transcribe(self, audio_path: Path) -> str:
        if self._client is None:
            self._client = _make_client(self._credentials)
        try:
            with open(audio_path, "rb") as f:
                result = self._client.audio.transcriptions.create(
                    model=self._ts.transcription_model,
                    file=f,
                )
        except OpenAIError as exc:
            raise ExternalServiceError(f"Audio transcription failed: {exc}") from exc
        return result.text or ""
