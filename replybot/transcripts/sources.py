"""
Transcript sources.

Each source implements ``try_fetch(video_id) -> FetchResult`` and never
raises for expected conditions. A source that simply has no transcript
returns UNAVAILABLE; only a broken transport (network error, unexpected
status) is an ERROR.

Sources, in the order the resolver normally tries them:
    CaptionsSource        YouTube Data API caption tracks (quota-limited)
    ArchiveMirrorSource   static mirror of previously fetched captions
    AITranscriptionSource yt-dlp audio download + speech-to-text (opt-in)
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from replybot.clients.http_client import ExternalHttpClient
from replybot.clients.youtube import YouTubeDataClient
from replybot.config.settings import TranscriptSettings, get_settings
from replybot.errors import ExternalServiceError
from replybot.transcripts.captions_parse import parse_caption_text

logger = logging.getLogger(__name__)


class FetchOutcome(str, Enum):
    FOUND = "FOUND"
    UNAVAILABLE = "UNAVAILABLE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class FetchResult:
    """Outcome of asking one source (or the resolver) for a transcript."""

    outcome: FetchOutcome
    text: str = ""
    source: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, text: str, source: str) -> "FetchResult":
        return cls(FetchOutcome.FOUND, text=text, source=source)

    @classmethod
    def unavailable(cls, source: Optional[str] = None) -> "FetchResult":
        return cls(FetchOutcome.UNAVAILABLE, source=source)

    @classmethod
    def failed(cls, error: str, source: Optional[str] = None) -> "FetchResult":
        return cls(FetchOutcome.ERROR, source=source, error=error)

    @property
    def is_found(self) -> bool:
        return self.outcome is FetchOutcome.FOUND


class TranscriptSource(Protocol):
    name: str

    def try_fetch(self, video_id: str) -> FetchResult: ...


def _select_track(tracks: list[dict[str, Any]], preferred: tuple[str, ...]) -> Optional[dict[str, Any]]:
    """Pick the first track in a preferred language, else the first track."""
    for language in preferred:
        for track in tracks:
            if (track.get("snippet") or {}).get("language") == language:
                return track
    return tracks[0] if tracks else None


class CaptionsSource:
    """Native captions via the YouTube Data API."""

    name = "captions"

    def __init__(
        self,
        youtube: YouTubeDataClient,
        settings: Optional[TranscriptSettings] = None,
    ) -> None:
        self._youtube = youtube
        self._settings = settings or get_settings().transcripts

    def try_fetch(self, video_id: str) -> FetchResult:
        try:
            tracks = self._youtube.list_caption_tracks(video_id)
            track = _select_track(tracks, self._settings.preferred_languages)
            if track is None:
                logger.info("No caption tracks for %s", video_id)
                return FetchResult.unavailable(self.name)

            language = (track.get("snippet") or {}).get("language")
            raw = self._youtube.download_caption(track["id"], fmt="srt")
        except ExternalServiceError as exc:
            return FetchResult.failed(str(exc), self.name)

        if raw is None:
            return FetchResult.unavailable(self.name)

        text = parse_caption_text(raw)
        if not text:
            return FetchResult.unavailable(self.name)
        logger.info("Captions for %s: track %s (%s), %d chars", video_id, track["id"], language, len(text))
        return FetchResult.found(text, self.name)


class ArchiveMirrorSource:
    """
    Plain-text transcripts on a static mirror, one file per video under the
    current year's directory. 404 means the mirror never captured it.
    """

    name = "archive"

    def __init__(
        self,
        http_client: Optional[ExternalHttpClient] = None,
        settings: Optional[TranscriptSettings] = None,
        year_func: Callable[[], int] = lambda: datetime.now(timezone.utc).year,
    ) -> None:
        self._http = http_client or ExternalHttpClient()
        self._settings = settings or get_settings().transcripts
        self._year_func = year_func

    def url_for(self, video_id: str) -> str:
        return self._settings.archive_url_template.format(year=self._year_func(), video_id=video_id)

    def try_fetch(self, video_id: str) -> FetchResult:
        url = self.url_for(video_id)
        try:
            response = self._http.get(url)
        except ExternalServiceError as exc:
            return FetchResult.failed(str(exc), self.name)

        if response.status_code == 404:
            return FetchResult.unavailable(self.name)
        if not 200 <= response.status_code < 300:
            return FetchResult.failed(
                f"Archive mirror returned status {response.status_code} for {video_id}", self.name
            )

        text = response.text.strip()
        if not text:
            return FetchResult.unavailable(self.name)
        logger.info("Archive transcript for %s: %d chars", video_id, len(text))
        return FetchResult.found(text, self.name)


class _VideoUnavailable(Exception):
    pass


class _DownloadFailed(Exception):
    pass


class AITranscriptionSource:
    """
    Last resort: download the audio with yt-dlp and run speech-to-text.

    Disabled unless ``ai_fallback_enabled`` is set; a disabled source
    always reports UNAVAILABLE without touching the network.
    """

    name = "ai"

    def __init__(
        self,
        transcriber,
        settings: Optional[TranscriptSettings] = None,
        run_func: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self._transcriber = transcriber
        self._settings = settings or get_settings().transcripts
        self._run = run_func

    @property
    def enabled(self) -> bool:
        return self._settings.ai_fallback_enabled

    def try_fetch(self, video_id: str) -> FetchResult:
        if not self.enabled:
            return FetchResult.unavailable(self.name)

        with tempfile.TemporaryDirectory(prefix="replybot-audio-") as tmp:
            output_dir = Path(tmp)
            try:
                audio_path = self._download_audio(video_id, output_dir)
            except (OSError, subprocess.SubprocessError) as exc:
                return FetchResult.failed(f"Audio download failed: {exc}", self.name)
            except _VideoUnavailable:
                return FetchResult.unavailable(self.name)
            except _DownloadFailed as exc:
                return FetchResult.failed(str(exc), self.name)

            try:
                text = self._transcriber.transcribe(audio_path).strip()
            except ExternalServiceError as exc:
                return FetchResult.failed(str(exc), self.name)

        if not text:
            return FetchResult.unavailable(self.name)
        logger.info("AI transcript for %s: %d chars", video_id, len(text))
        return FetchResult.found(text, self.name)

    def _download_audio(self, video_id: str, output_dir: Path) -> Path:
        args = [
            self._settings.ytdlp_binary,
            "--no-playlist",
            "-f", "bestaudio",
            "-o", str(output_dir / "source.%(ext)s"),
            f"https://www.youtube.com/watch?v={video_id}",
        ]
        result = self._run(args, capture_output=True, text=True, timeout=self._settings.ytdlp_timeout)
        if result.returncode != 0:
            stderr = result.stderr or ""
            if "Video unavailable" in stderr or "Private video" in stderr:
                raise _VideoUnavailable(video_id)
            raise _DownloadFailed(f"yt-dlp failed (rc={result.returncode}): {stderr[:300]}")

        downloaded = sorted(output_dir.glob("source.*"))
        if not downloaded:
            raise _DownloadFailed("No audio file found after download")
        logger.info("Downloaded audio for %s: %s", video_id, downloaded[0].name)
        return downloaded[0]
