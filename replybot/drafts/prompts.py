"""Prompt construction and reply parsing for draft generation."""

from __future__ import annotations

import json
import re
from typing import Sequence

from replybot.drafts.retriever import RetrievedChunk

SYSTEM_PROMPT = (
    "You reply to YouTube comments on behalf of the channel. "
    "Answer using only the video transcript excerpts provided. "
    "If the excerpts do not cover the question, say so politely instead of guessing. "
    "Reply in the language of the comment, in at most five sentences, "
    "friendly and specific, without hashtags or emoji spam."
)

_JSON_INSTRUCTION = 'Respond with a JSON object only: {"reply_text": "<your reply>"}'

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def build_messages(
    comment_text: str,
    contexts: Sequence[RetrievedChunk],
    video_title: str = "",
    json_mode: bool = True,
) -> list[dict[str, str]]:
    excerpts = "\n\n".join(
        f"[{i + 1}] {c.text}" for i, c in enumerate(contexts)
    )
    user_parts = []
    if video_title:
        user_parts.append(f"--- Video Title ---\n{video_title}")
    user_parts.append(f"--- Video Transcript Excerpts ---\n{excerpts}")
    user_parts.append(f'--- Viewer Comment ---\n"{comment_text}"')
    if json_mode:
        user_parts.append(_JSON_INSTRUCTION)

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "\n\n".join(user_parts)},
    ]


def parse_reply(raw: str, json_mode: bool = True) -> str:
    """
    Extract the reply text from a completion.

    In JSON mode the completion must be ``{"reply_text": ...}``, optionally
    wrapped in a ```json fence. Raises ValueError when it is not.
    """
    text = (raw or "").strip()
    if not json_mode:
        return text

    text = _FENCE_RE.sub("", text).strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Completion is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("reply_text"), str):
        raise ValueError("Completion JSON has no reply_text string")
    return payload["reply_text"].strip()
