"""
YouTube Data API v3 clients.

Read calls (captions, video metadata) authenticate with the API key and,
when OAuth credentials are configured, a bearer token. Posting replies
always needs OAuth. Every call is charged against the shared YouTube
quota bucket in the provider's own unit costs.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from replybot.clients.http_client import ExternalHttpClient
from replybot.clients.rate_limiter import RateLimiter, admit
from replybot.config.settings import (
    CredentialSettings,
    RateLimitSettings,
    TranscriptSettings,
    get_settings,
)
from replybot.errors import ExternalServiceError

logger = logging.getLogger(__name__)

YOUTUBE_QUOTA_KEY = "youtube-data-api"

_TOKEN_URL = "https://oauth2.googleapis.com/token"


class GoogleOAuthTokenProvider:
    """Exchanges the configured refresh token for short-lived access tokens."""

    # Refresh this many seconds before Google's stated expiry
    _EXPIRY_MARGIN = 60.0

    def __init__(
        self,
        credentials: Optional[CredentialSettings] = None,
        http_client: Optional[ExternalHttpClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._credentials = credentials or get_settings().credentials
        self._http = http_client or ExternalHttpClient()
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        c = self._credentials
        return bool(c.google_client_id and c.google_client_secret and c.youtube_refresh_token)

    def access_token(self) -> str:
        with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._token

            response = self._http.post(
                _TOKEN_URL,
                data={
                    "client_id": self._credentials.require("google_client_id"),
                    "client_secret": self._credentials.require("google_client_secret"),
                    "refresh_token": self._credentials.require("youtube_refresh_token"),
                    "grant_type": "refresh_token",
                },
            )
            if response.status_code != 200:
                raise ExternalServiceError(
                    f"OAuth token refresh failed with status {response.status_code}",
                    status_code=response.status_code,
                )
            body = response.json()
            self._token = body["access_token"]
            self._expires_at = self._clock() + float(body.get("expires_in", 3600)) - self._EXPIRY_MARGIN
            logger.info("Refreshed YouTube OAuth access token")
            return self._token


class YouTubeDataClient:
    """Read-side YouTube calls: caption tracks, caption bodies, video metadata."""

    def __init__(
        self,
        http_client: Optional[ExternalHttpClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        oauth: Optional[GoogleOAuthTokenProvider] = None,
        transcript_settings: Optional[TranscriptSettings] = None,
        rate_limit_settings: Optional[RateLimitSettings] = None,
        credentials: Optional[CredentialSettings] = None,
    ) -> None:
        settings = get_settings()
        self._http = http_client or ExternalHttpClient()
        self._limiter = rate_limiter
        self._oauth = oauth
        self._ts = transcript_settings or settings.transcripts
        self._rl = rate_limit_settings or settings.rate_limit
        self._credentials = credentials or settings.credentials

    def list_caption_tracks(self, video_id: str) -> list[dict[str, Any]]:
        """Caption tracks for a video. Empty when the video has none or does not exist."""
        admit(self._limiter, YOUTUBE_QUOTA_KEY, self._rl.captions_list_cost, self._rl.max_wait)
        response = self._http.get(
            f"{self._ts.youtube_api_base}/captions",
            params={"part": "snippet", "videoId": video_id, **self._key_param()},
            headers=self._auth_headers(),
        )
        if response.status_code == 404:
            return []
        self._raise_for_status(response, f"captions.list for {video_id}")
        return list(response.json().get("items") or [])

    def download_caption(self, track_id: str, fmt: str = "srt") -> Optional[str]:
        """
        Download one caption track as text.

        Returns None when the track is gone or the caller is not allowed to
        download it (403 on videos the channel does not own).
        """
        admit(self._limiter, YOUTUBE_QUOTA_KEY, self._rl.captions_download_cost, self._rl.max_wait)
        response = self._http.get(
            f"{self._ts.youtube_api_base}/captions/{track_id}",
            params={"tfmt": fmt, **self._key_param()},
            headers=self._auth_headers(),
        )
        if response.status_code in (403, 404):
            logger.info("Caption track %s not downloadable (status %d)", track_id, response.status_code)
            return None
        self._raise_for_status(response, f"captions.download for track {track_id}")
        return response.text

    def fetch_video_meta(self, video_id: str) -> Optional[dict[str, str]]:
        """Title, description and channel of a video, or None if it does not exist."""
        admit(self._limiter, YOUTUBE_QUOTA_KEY, self._rl.videos_list_cost, self._rl.max_wait)
        response = self._http.get(
            f"{self._ts.youtube_api_base}/videos",
            params={"part": "snippet", "id": video_id, **self._key_param()},
            headers=self._auth_headers(),
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"videos.list for {video_id}")
        items = response.json().get("items") or []
        if not items:
            return None
        snippet = items[0].get("snippet") or {}
        return {
            "title": snippet.get("title", ""),
            "description": snippet.get("description", ""),
            "channelTitle": snippet.get("channelTitle", ""),
        }

    def _key_param(self) -> dict[str, str]:
        key = self._credentials.youtube_api_key
        return {"key": key} if key else {}

    def _auth_headers(self) -> dict[str, str]:
        if self._oauth is not None and self._oauth.configured:
            return {"Authorization": f"Bearer {self._oauth.access_token()}"}
        return {}

    @staticmethod
    def _raise_for_status(response, action: str) -> None:
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"{action} failed with status {response.status_code}",
                status_code=response.status_code,
            )


class YouTubeWriteClient:
    """Posts replies to comments through comments.insert."""

    def __init__(
        self,
        oauth: GoogleOAuthTokenProvider,
        http_client: Optional[ExternalHttpClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        transcript_settings: Optional[TranscriptSettings] = None,
        rate_limit_settings: Optional[RateLimitSettings] = None,
    ) -> None:
        settings = get_settings()
        self._oauth = oauth
        self._http = http_client or ExternalHttpClient()
        self._limiter = rate_limiter
        self._ts = transcript_settings or settings.transcripts
        self._rl = rate_limit_settings or settings.rate_limit

    def post(self, parent_comment_id: str, text: str, acting_user_id: str) -> dict[str, str]:
        """
        Post *text* as a reply to *parent_comment_id*.

        Returns ``{"postedCommentId": ...}``. The acting user is only logged:
        the reply is always posted as the channel that owns the OAuth token.
        """
        admit(self._limiter, YOUTUBE_QUOTA_KEY, self._rl.comments_insert_cost, self._rl.max_wait)
        logger.info("Posting reply to %s on behalf of user %s", parent_comment_id, acting_user_id)

        response = self._http.post(
            f"{self._ts.youtube_api_base}/comments",
            params={"part": "snippet"},
            headers={"Authorization": f"Bearer {self._oauth.access_token()}"},
            json={"snippet": {"parentId": parent_comment_id, "textOriginal": text}},
        )
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"comments.insert failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        posted_id = (response.json() or {}).get("id")
        if not posted_id:
            raise ExternalServiceError(
                "YouTube API did not return a comment id - reply may not have been posted"
            )
        return {"postedCommentId": posted_id}
