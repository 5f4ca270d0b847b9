"""Deterministic cleanup of raw transcript text before chunking."""

from __future__ import annotations

import html
import re
import unicodedata

from bs4 import BeautifulSoup
from nltk.stem import PorterStemmer

from replybot.config.settings import IngestionSettings, get_settings


_STOPWORDS = {
    "about", "also", "been", "but", "can", "could", "does", "from", "have",
    "here", "into", "just", "like", "more", "only", "other", "over", "some",
    "than", "that", "them", "then", "there", "these", "they", "this", "very",
    "want", "were", "what", "when", "which", "will", "with", "would", "your",
    "yeah", "okay", "really", "going", "know", "thing", "things",
}

_URL_RE = re.compile(r"(?:https?://\S+|www\.\S+)", re.IGNORECASE)
_MARKUP_HINT_RE = re.compile(r"<[a-zA-Z/!][^>]*>")
_BRACKET_CUE_RE = re.compile(r"\[(?:music|applause|laughter|เพลง)\]", re.IGNORECASE)
_SPACES_RE = re.compile(r"[ \t]+")
_BLANK_LINES_RE = re.compile(r"\n{2,}")
_WORD_RE = re.compile(r"\w+", re.UNICODE)


class TranscriptNormalizer:
    """
    Transcript cleanup pipeline.

    Steps:
      1) HTML strip (only when the text contains markup)
      2) HTML entity decode
      3) Unicode normalization (NFKC)
      4) URL removal
      5) Non-speech cue removal ([Music], [Applause], ...)
      6) Whitespace normalization, keeping line breaks as sentence hints

    Case is preserved: chunks are embedded and shown to the model verbatim.
    """

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or get_settings().ingestion
        self._stemmer = PorterStemmer()

    def normalize(self, text: str | None) -> str:
        if not text:
            return ""

        value = text
        if _MARKUP_HINT_RE.search(value):
            value = BeautifulSoup(value, "lxml").get_text("\n")

        value = html.unescape(value)
        value = unicodedata.normalize("NFKC", value)
        value = _URL_RE.sub(" ", value)
        value = _BRACKET_CUE_RE.sub(" ", value)

        lines = [_SPACES_RE.sub(" ", line).strip() for line in value.splitlines()]
        value = "\n".join(line for line in lines if line)
        return _BLANK_LINES_RE.sub("\n", value).strip()

    def keyword_tokens(self, text: str | None) -> list[tuple[str, str]]:
        """
        Candidate summary keywords as ``(stem, surface)`` pairs.

        Lowercased words longer than ``min_keyword_length - 1`` characters,
        minus stopwords and numbers. The stem groups inflections
        ("benchmark", "benchmarks") under one keyword.
        """
        if not text:
            return []
        tokens = []
        for word in _WORD_RE.findall(text.lower()):
            if len(word) < self._settings.min_keyword_length:
                continue
            if word in _STOPWORDS or word.isdigit() or "_" in word:
                continue
            tokens.append((self._stemmer.stem(word), word))
        return tokens
