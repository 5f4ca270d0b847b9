"""
Central configuration for the reply bot.

All tunables live here. Nothing is hardcoded in module code.
Credentials are the only values read from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from replybot.errors import ConfigurationError


def _project_root() -> Path:
    """Walk up from this file to find the project root (where pyproject.toml lives)."""
    current = Path(__file__).resolve().parent
    while current != current.parent:
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    # Fallback: two levels up from config/settings.py
    return Path(__file__).resolve().parent.parent.parent


def _env(name: str, *fallbacks: str) -> Optional[str]:
    for key in (name, *fallbacks):
        value = os.environ.get(key)
        if value:
            return value
    return None


@dataclass(frozen=True)
class StorageSettings:
    """Settings for SQLite storage."""

    db_name: str = "replybot.db"

    journal_mode: str = "WAL"

    # How long to wait for a locked DB (milliseconds)
    busy_timeout_ms: int = 5000


@dataclass(frozen=True)
class RateLimitSettings:
    """
    Token bucket settings for each quota-constrained external API.

    Refill rates are in tokens per millisecond. Costs are in the
    provider's own quota units (YouTube Data API units, requests for OpenAI).
    """

    # YouTube Data API: 10,000 units per day
    youtube_capacity: int = 2000
    youtube_refill_rate: float = 10_000 / 86_400_000

    # Quota cost per YouTube call type
    captions_list_cost: int = 50
    captions_download_cost: int = 200
    videos_list_cost: int = 1
    comments_insert_cost: int = 50

    # OpenAI embeddings (~3000 requests/min)
    embeddings_capacity: int = 60
    embeddings_refill_rate: float = 0.05

    # OpenAI chat completions (~500 requests/min)
    completions_capacity: int = 20
    completions_refill_rate: float = 500 / 60_000

    # How long a caller may block waiting for admission (seconds)
    max_wait: float = 30.0

    # Evict buckets not touched for this many seconds
    eviction_ttl: float = 3600.0


@dataclass(frozen=True)
class HttpSettings:
    """Settings for outbound HTTP calls."""

    user_agent: str = "ReplyBot/0.1"

    request_timeout: int = 30

    max_retries: int = 2

    # Backoff base for retries (seconds). Actual wait = base * 2^attempt
    backoff_base: float = 1.0

    max_backoff: float = 30.0


@dataclass(frozen=True)
class TranscriptSettings:
    """Settings for transcript sources."""

    youtube_api_base: str = "https://www.googleapis.com/youtube/v3"

    # Caption track languages, most preferred first
    preferred_languages: tuple[str, ...] = ("th", "en")

    # Archive of previously fetched captions, addressed by year and video id
    archive_url_template: str = (
        "https://raw.githubusercontent.com/sarawutnbs-dev/youtube-transcript/main/{year}/{video_id}.txt"
    )

    # AI transcription is slow and costly; only used when explicitly enabled
    ai_fallback_enabled: bool = False
    ytdlp_binary: str = "yt-dlp"
    ytdlp_timeout: int = 600
    transcription_model: str = "whisper-1"


@dataclass(frozen=True)
class EmbeddingSettings:
    """Settings for the embedding provider."""

    # "local" (sentence-transformers) or "openai"
    provider: str = "local"

    local_model_name: str = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"

    openai_model_name: str = "text-embedding-3-small"

    batch_size: int = 64


@dataclass(frozen=True)
class IngestionSettings:
    """Settings for transcript chunking and ingestion."""

    # Sized for the embedding model's context window
    chunk_max_tokens: int = 400
    chunk_overlap_tokens: int = 60

    # Keywords kept in the derived video summary
    summary_keywords: int = 10

    min_keyword_length: int = 4


@dataclass(frozen=True)
class IndexingSettings:
    """Settings for the video index orchestrator."""

    # Concurrent ensure_video_index calls during ensure_missing
    max_concurrency: int = 2

    # Records stuck in PROCESSING longer than this are considered dead
    stale_processing_seconds: int = 3600


@dataclass(frozen=True)
class GenerationSettings:
    """Settings for RAG draft generation."""

    chat_model: str = "gpt-4o-mini"

    max_tokens: int = 800

    temperature: float = 0.4

    # Retrieved chunks per comment
    top_k: int = 4

    # Chunks scoring below this cosine similarity are not treated as relevant
    min_score: float = 0.2

    # Ask the model for {"reply_text": ...} instead of plain text
    json_mode: bool = True

    # Only retrieve chunks from the comment's own video
    scope_to_video: bool = True


@dataclass(frozen=True)
class JobSettings:
    """Settings for the in-process job queue and worker."""

    poll_interval: float = 1.0

    # Attempts (first run included) before a failed job is left alone
    max_attempts: int = 4

    # Retry backoff: min(base * 2^(attempts-1), max) seconds, +/- jitter fraction
    retry_backoff_base: float = 30.0
    retry_backoff_max: float = 3600.0
    retry_jitter: float = 0.2

    # Finished jobs kept in memory by cleanup_finished
    keep_finished: int = 500


@dataclass(frozen=True)
class SchedulerSettings:
    """Settings for the periodic maintenance loop."""

    tick_interval: float = 5.0

    ensure_missing_interval: float = 900.0


@dataclass(frozen=True)
class CredentialSettings:
    """Secrets, read from the environment at construction time."""

    youtube_api_key: Optional[str] = field(default_factory=lambda: _env("YOUTUBE_API_KEY"))
    google_client_id: Optional[str] = field(default_factory=lambda: _env("GOOGLE_CLIENT_ID"))
    google_client_secret: Optional[str] = field(default_factory=lambda: _env("GOOGLE_CLIENT_SECRET"))
    youtube_refresh_token: Optional[str] = field(
        default_factory=lambda: _env("YOUTUBE_OAUTH_REFRESH_TOKEN")
    )
    openai_api_key: Optional[str] = field(default_factory=lambda: _env("OPENAI_API_KEY", "AI_API_KEY"))

    def require(self, name: str) -> str:
        """Return a credential or raise ConfigurationError if it is not set."""
        value = getattr(self, name)
        if not value:
            raise ConfigurationError(f"Missing required credential: {name}")
        return value


@dataclass
class Settings:
    """
    Top-level settings container. Aggregates all subsystem settings.

    Usage:
        settings = get_settings()
        print(settings.ingestion.chunk_max_tokens)
    """

    project_root: Path = field(default_factory=_project_root)
    storage: StorageSettings = field(default_factory=StorageSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    transcripts: TranscriptSettings = field(default_factory=TranscriptSettings)
    embedding: EmbeddingSettings = field(default_factory=EmbeddingSettings)
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    indexing: IndexingSettings = field(default_factory=IndexingSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    jobs: JobSettings = field(default_factory=JobSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    credentials: CredentialSettings = field(default_factory=CredentialSettings)

    @property
    def data_dir(self) -> Path:
        """Root directory for all runtime data (DB, logs)."""
        return self.project_root / "data"

    @property
    def db_path(self) -> Path:
        """Full path to the SQLite database file."""
        return self.data_dir / "db" / self.storage.db_name

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    def ensure_dirs(self) -> None:
        """Create all required data directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Returns the singleton Settings instance.

    Call this instead of constructing Settings() directly so the entire
    application shares one config object.
    """
    settings = Settings()
    settings.ensure_dirs()
    return settings
