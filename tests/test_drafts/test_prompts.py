"""Tests for prompt construction and completion parsing."""

from __future__ import annotations

import pytest

from replybot.drafts.prompts import SYSTEM_PROMPT, build_messages, parse_reply
from replybot.drafts.retriever import RetrievedChunk


def _contexts():
    return [
        RetrievedChunk("V1", 0, "The CPU is a Ryzen 7 7800X3D.", 0.81),
        RetrievedChunk("V1", 3, "We paired it with 32GB of DDR5.", 0.44),
    ]


class TestBuildMessages:
    def test_structure(self):
        messages = build_messages("What CPU?", _contexts(), video_title="PC build")
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == SYSTEM_PROMPT

    def test_user_message_contents(self):
        user = build_messages("What CPU?", _contexts(), video_title="PC build")[1]["content"]
        assert "--- Video Title ---\nPC build" in user
        assert "[1] The CPU is a Ryzen 7 7800X3D." in user
        assert "[2] We paired it with 32GB of DDR5." in user
        assert '"What CPU?"' in user
        assert "reply_text" in user
        assert user.index("[1]") < user.index("[2]") < user.index("What CPU?")

    def test_no_title_and_plain_mode(self):
        user = build_messages("What CPU?", _contexts(), json_mode=False)[1]["content"]
        assert "Video Title" not in user
        assert "reply_text" not in user


class TestParseReply:
    def test_json(self):
        assert parse_reply('{"reply_text": " Ryzen 7! "}') == "Ryzen 7!"

    def test_fenced_json(self):
        assert parse_reply('```json\n{"reply_text": "Ryzen 7"}\n```') == "Ryzen 7"

    def test_plain_mode(self):
        assert parse_reply("  just text \n", json_mode=False) == "just text"

    @pytest.mark.parametrize("raw", ["not json", '{"text": "x"}', '["reply_text"]', '{"reply_text": 5}'])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_reply(raw)
