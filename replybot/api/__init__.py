"""FastAPI surface over ReplyBotService. Authentication is handled upstream."""

from replybot.api.app import create_app

__all__ = ["create_app"]
