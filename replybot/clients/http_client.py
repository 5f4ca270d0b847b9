"""HTTP client for external API calls with retry and backoff."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import requests

from replybot.config.settings import HttpSettings, get_settings
from replybot.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class ExternalHttpClient:
    """
    Thin wrapper around a requests Session.

    Retryable statuses (429, 5xx) and transport errors are retried with
    exponential backoff, then raised as ExternalServiceError. Every other
    response, 404 included, is returned so the caller can interpret it.
    """

    _RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        settings: Optional[HttpSettings] = None,
        session: Optional[requests.Session] = None,
        sleep_func: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings or get_settings().http
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self._settings.user_agent})
        self._sleep = sleep_func

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self._settings.request_timeout)
        last_error: Optional[Exception] = None
        last_status: Optional[int] = None

        for attempt in range(self._settings.max_retries + 1):
            try:
                response = self._session.request(method, url, **kwargs)
            except requests.RequestException as exc:
                last_error = exc
                logger.warning("%s %s failed (attempt %d): %s", method, url, attempt + 1, exc)
                if attempt >= self._settings.max_retries:
                    break
                self._sleep_with_backoff(attempt)
                continue

            if response.status_code in self._RETRYABLE_STATUS_CODES:
                last_status = response.status_code
                last_error = None
                logger.warning(
                    "%s %s returned retryable status %d (attempt %d)",
                    method, url, response.status_code, attempt + 1,
                )
                if attempt >= self._settings.max_retries:
                    break
                self._sleep_with_backoff(attempt)
                continue

            return response

        raise ExternalServiceError(
            f"{method} {url} failed after {self._settings.max_retries + 1} attempts"
            + (f": {last_error}" if last_error else f" (status {last_status})"),
            status_code=last_status,
        ) from last_error

    def _sleep_with_backoff(self, attempt: int) -> None:
        backoff = min(
            self._settings.backoff_base * (2 ** attempt),
            self._settings.max_backoff,
        )
        self._sleep(backoff)
