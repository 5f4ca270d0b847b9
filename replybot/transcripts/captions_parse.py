"""
Caption file (SRT or WebVTT) -> plain text.

Removes cue numbers, timestamps, headers and inline markup, and drops
lines repeated by rolling captions.
"""

from __future__ import annotations

import re

_TIMESTAMP_RE = re.compile(
    r"^\d{1,2}:\d{2}:\d{2}[.,]\d{3}\s*-->\s*\d{1,2}:\d{2}:\d{2}[.,]\d{3}.*$",
    re.MULTILINE,
)
_SHORT_TIMESTAMP_RE = re.compile(
    r"^\d{2}:\d{2}[.,]\d{3}\s*-->\s*\d{2}:\d{2}[.,]\d{3}.*$",
    re.MULTILINE,
)
_CUE_ID_RE = re.compile(r"^\d+\s*$", re.MULTILINE)
_WEBVTT_HEADER_RE = re.compile(r"^WEBVTT.*$", re.MULTILINE)
_META_RE = re.compile(r"^(?:Kind|Language):.*$", re.MULTILINE)
_NOTE_RE = re.compile(r"^NOTE(?:\s.*)?$", re.MULTILINE)
_TAG_RE = re.compile(r"<[^>]+>")
_BRACE_TAG_RE = re.compile(r"\{\\[^}]*\}")


def parse_caption_text(raw: str) -> str:
    """
    Convert SRT or VTT caption text into one line of speech per cue.

    Blank results mean the track held no spoken text.
    """
    content = raw.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")

    content = _WEBVTT_HEADER_RE.sub("", content)
    content = _META_RE.sub("", content)
    content = _NOTE_RE.sub("", content)
    content = _TIMESTAMP_RE.sub("", content)
    content = _SHORT_TIMESTAMP_RE.sub("", content)
    content = _CUE_ID_RE.sub("", content)
    content = _TAG_RE.sub("", content)
    content = _BRACE_TAG_RE.sub("", content)

    lines: list[str] = []
    prev = None
    for line in content.splitlines():
        stripped = re.sub(r"[ \t]+", " ", line).strip()
        if not stripped or stripped == prev:
            continue
        lines.append(stripped)
        prev = stripped

    return "\n".join(lines)
