"""Derived per-video summary stored alongside the index."""

from __future__ import annotations

from collections import Counter
from typing import Any, Optional, Sequence

from replybot.ingestion.normalize import TranscriptNormalizer


def summarize_chunks(
    chunks: Sequence[str],
    top_n: int = 10,
    normalizer: Optional[TranscriptNormalizer] = None,
) -> dict[str, Any]:
    """
    ``{"totalChunks", "keywords", "topics"}`` for a list of chunk texts.

    Keywords are the most frequent stems across all chunks, each shown as
    its most common surface form. Ties keep first-seen order. ``topics``
    is reserved for a classifier and is always empty here.
    """
    normalizer = normalizer or TranscriptNormalizer()

    stem_counts: Counter[str] = Counter()
    surfaces: dict[str, Counter[str]] = {}
    for chunk in chunks:
        for stem, surface in normalizer.keyword_tokens(chunk):
            stem_counts[stem] += 1
            surfaces.setdefault(stem, Counter())[surface] += 1

    keywords = [surfaces[stem].most_common(1)[0][0] for stem, _ in stem_counts.most_common(top_n)]
    return {
        "totalChunks": len(chunks),
        "keywords": keywords,
        "topics": [],
    }
