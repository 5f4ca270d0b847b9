"""Clients for external providers and the rate limiter that guards them."""

from replybot.clients.http_client import ExternalHttpClient
from replybot.clients.rate_limiter import RateLimiter, admit

__all__ = ["ExternalHttpClient", "RateLimiter", "admit"]
