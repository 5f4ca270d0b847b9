"""
Error taxonomy shared by every subsystem.

"Unavailable" (a source simply has no data for a key) is deliberately absent:
it is an ordinary outcome, see ``replybot.transcripts.sources.FetchResult``.
"""

from __future__ import annotations

from typing import Optional


class ReplyBotError(Exception):
    """Base class for all errors raised by replybot."""


class ConfigurationError(ReplyBotError):
    """Fatal misconfiguration: missing credentials, impossible limits, etc."""


class ExternalServiceError(ReplyBotError):
    """Transient failure talking to an external provider (network, timeout, 5xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceeded(ExternalServiceError):
    """A rate-limited call was not admitted within its wait budget."""


class DataIntegrityError(ReplyBotError):
    """A referenced record (draft, comment) is missing or inconsistent."""
