"""Ordered fallback across transcript sources."""

from __future__ import annotations

import logging
from typing import Sequence

from replybot.transcripts.sources import FetchOutcome, FetchResult, TranscriptSource

logger = logging.getLogger(__name__)


class TranscriptResolver:
    """
    Try each source in order until one has the transcript.

    UNAVAILABLE moves on to the next source. FOUND and ERROR stop the
    search: an ERROR means something is broken and is returned to the
    caller instead of being masked by a later, costlier source. When every
    source is unavailable the result is UNAVAILABLE (not found).
    """

    def __init__(self, sources: Sequence[TranscriptSource]) -> None:
        self._sources = list(sources)

    @property
    def source_names(self) -> list[str]:
        return [s.name for s in self._sources]

    def resolve(self, video_id: str) -> FetchResult:
        for source in self._sources:
            result = source.try_fetch(video_id)
            if result.outcome is FetchOutcome.FOUND:
                logger.info("Transcript for %s resolved from %s", video_id, source.name)
                return result
            if result.outcome is FetchOutcome.ERROR:
                logger.warning("Transcript source %s failed for %s: %s", source.name, video_id, result.error)
                return result
            logger.debug("Transcript source %s has nothing for %s", source.name, video_id)

        logger.info("No transcript available for %s from %s", video_id, self.source_names)
        return FetchResult.unavailable()
