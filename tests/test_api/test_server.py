"""Tests for the uvicorn entry point."""

from __future__ import annotations

import sys

import pytest

from replybot.api import server


class TestServerMain:
    def test_runs_single_worker_app_factory(self, monkeypatch):
        calls = []
        monkeypatch.setattr(server.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
        monkeypatch.setattr(server, "setup_logging", lambda **kwargs: calls.append(("logging", kwargs)))
        monkeypatch.setattr(sys, "argv", ["replybot-api", "--port", "9000", "--log-level", "DEBUG"])

        assert server.main() == 0

        assert calls[0][0] == "logging"
        assert calls[0][1]["level"] == "DEBUG"
        app, kwargs = calls[1]
        assert app == "replybot.api.app:create_app"
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9000
        assert kwargs["workers"] == 1
        assert kwargs["log_level"] == "debug"

    def test_rejects_unknown_log_level(self):
        with pytest.raises(SystemExit):
            server.build_parser().parse_args(["--log-level", "LOUD"])
