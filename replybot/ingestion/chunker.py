"""
Sentence-preserving transcript chunker.

Text is split into sentences (and caption lines), which are packed into
chunks of at most ``max_tokens``. Each new chunk starts with the trailing
sentences of the previous one, up to ``overlap`` tokens. A single sentence
longer than ``max_tokens`` is cut on character boundaries, preferring a
space near the cut.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

# Rough estimate shared with the embedding providers' context limits
CHARS_PER_TOKEN = 4

_SENTENCE_END_RE = re.compile(r"(?<=[.!?。])\s+|\n+")


@dataclass(frozen=True)
class TextChunk:
    index: int
    text: str
    tokens: int


def count_tokens(text: str) -> int:
    """Approximate token count: one token per four characters."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_END_RE.split(text) if s and s.strip()]


def _split_by_characters(text: str, max_tokens: int) -> list[str]:
    max_chars = max_tokens * CHARS_PER_TOKEN
    pieces: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + max_chars, len(text))
        if end < len(text):
            space = text.rfind(" ", start, end)
            if space > start + max_chars * 0.8:
                end = space
        piece = text[start:end].strip()
        if piece:
            pieces.append(piece)
        start = end
    return pieces


def _overlap_tail(segments: list[str], overlap: int) -> list[str]:
    """Trailing segments whose combined size fits in *overlap* tokens."""
    if overlap <= 0:
        return []
    tail: list[str] = []
    tokens = 0
    for segment in reversed(segments):
        segment_tokens = count_tokens(segment)
        if tokens + segment_tokens > overlap:
            break
        tail.insert(0, segment)
        tokens += segment_tokens
    return tail


def _joined_tokens(segments: list[str], extra: str) -> int:
    return count_tokens(" ".join([*segments, extra]))


def chunk_text(text: str, max_tokens: int = 400, overlap: int = 60) -> list[TextChunk]:
    """Split *text* into overlapping chunks of at most *max_tokens* each."""
    if max_tokens <= 0:
        raise ValueError("max_tokens must be positive")
    if overlap < 0 or overlap >= max_tokens:
        raise ValueError("overlap must be in [0, max_tokens)")

    text = (text or "").strip()
    if not text:
        return []

    texts: list[str] = []
    if count_tokens(text) <= max_tokens:
        texts.append(" ".join(split_sentences(text)) or text)
    else:
        current: list[str] = []
        for segment in split_sentences(text):
            if count_tokens(segment) > max_tokens:
                if current:
                    texts.append(" ".join(current))
                    current = []
                texts.extend(_split_by_characters(segment, max_tokens))
                continue

            if current and _joined_tokens(current, segment) > max_tokens:
                texts.append(" ".join(current))
                current = _overlap_tail(current, overlap)
                # The overlap plus the next segment must still fit
                while current and _joined_tokens(current, segment) > max_tokens:
                    current.pop(0)

            current.append(segment)

        if current:
            texts.append(" ".join(current))

    return [TextChunk(index=i, text=t, tokens=count_tokens(t)) for i, t in enumerate(texts)]
