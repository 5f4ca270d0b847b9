"""
Deterministic stand-ins for external collaborators.

None of these touch the network. Each records its calls so tests can
assert on what the code under test asked for.
"""

from __future__ import annotations

import json
import re
import threading
import zlib
from typing import Any, Callable, Optional

import numpy as np

from replybot.errors import ExternalServiceError
from replybot.transcripts.sources import FetchResult

_WORD_RE = re.compile(r"\w+")


class HashingEmbedder:
    """
    Bag-of-words vectors: one bias dimension plus hashed word counts.

    The bias keeps every pair of texts at a positive cosine similarity,
    while shared words push the score up.
    """

    def __init__(self, dim: int = 64) -> None:
        self.dim = dim
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def embed(self, text: str) -> np.ndarray:
        with self._lock:
            self.calls.append(text)
        vec = np.zeros(self.dim, dtype=np.float32)
        vec[0] = 1.0
        for word in _WORD_RE.findall(text.lower()):
            vec[1 + zlib.crc32(word.encode("utf-8")) % (self.dim - 1)] += 1.0
        return vec

    def embed_batch(self, texts: list[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, self.dim), dtype=np.float32)
        return np.vstack([self.embed(t) for t in texts])


class FlakyEmbedder(HashingEmbedder):
    """Batch calls always fail; single calls fail for texts containing *poison*."""

    def __init__(self, poison: str = "POISON", dim: int = 64) -> None:
        super().__init__(dim)
        self.poison = poison
        self.batch_calls = 0

    def embed(self, text: str) -> np.ndarray:
        if self.poison in text:
            raise ExternalServiceError("embedding provider returned 503", status_code=503)
        return super().embed(text)

    def embed_batch(self, texts: list[str]) -> np.ndarray:
        self.batch_calls += 1
        raise ExternalServiceError("batch embedding timed out")


class FakeCompletion:
    """Answers every prompt with a fixed reply, JSON-wrapped in JSON mode."""

    def __init__(self, reply: str = "The video uses a Ryzen 7 7800X3D.", fail_on: Optional[str] = None) -> None:
        self.reply = reply
        self.fail_on = fail_on
        self.calls: list[dict[str, Any]] = []

    def complete(self, messages, model=None, max_tokens=None, json_mode=False) -> str:
        self.calls.append(
            {"messages": messages, "model": model, "max_tokens": max_tokens, "json_mode": json_mode}
        )
        if self.fail_on and any(self.fail_on in m["content"] for m in messages):
            raise ExternalServiceError("completion timed out")
        if json_mode:
            return json.dumps({"reply_text": self.reply})
        return self.reply


class FakeSource:
    """Transcript source returning canned results per video id."""

    def __init__(self, name: str, results: Optional[dict[str, FetchResult]] = None, default: Optional[FetchResult] = None) -> None:
        self.name = name
        self.results = results or {}
        self.default = default or FetchResult.unavailable(name)
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def try_fetch(self, video_id: str) -> FetchResult:
        with self._lock:
            self.calls.append(video_id)
        return self.results.get(video_id, self.default)


class FakeWriter:
    """Write API recording each post and returning sequential reply ids."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.posts: list[dict[str, str]] = []

    def post(self, parent_comment_id: str, text: str, acting_user_id: str) -> dict[str, str]:
        if self.fail:
            raise ExternalServiceError("comments.insert failed with status 500", status_code=500)
        self.posts.append(
            {"parentCommentId": parent_comment_id, "text": text, "actingUserId": acting_user_id}
        )
        return {"postedCommentId": f"yt-reply-{len(self.posts)}"}


class FakeResponse:
    """Minimal requests.Response look-alike."""

    def __init__(self, status_code: int = 200, text: str = "", json_data: Any = None) -> None:
        self.status_code = status_code
        self.text = text if json_data is None else json.dumps(json_data)
        self._json = json_data

    def json(self) -> Any:
        if self._json is None:
            return json.loads(self.text)
        return self._json


class FakeHttp:
    """
    Stand-in for ExternalHttpClient.

    *routes* maps a URL prefix to a FakeResponse, an exception to raise, or
    a callable ``(method, url, kwargs) -> FakeResponse``. Longest prefix wins.
    """

    def __init__(self, routes: Optional[dict[str, Any]] = None) -> None:
        self.routes = routes or {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        matches = [prefix for prefix in self.routes if url.startswith(prefix)]
        if not matches:
            return FakeResponse(404, "not found")
        route = self.routes[max(matches, key=len)]
        if isinstance(route, Exception):
            raise route
        if callable(route) and not isinstance(route, FakeResponse):
            return route(method, url, kwargs)
        return route


class FakeSession:
    """requests.Session stand-in that replays a scripted list of outcomes."""

    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = list(outcomes)
        self.headers: dict[str, str] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def request(self, method: str, url: str, **kwargs: Any):
        self.calls.append((method, url, kwargs))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class ManualClock:
    """Controllable clock; ``advance`` moves it forward."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, delta: float) -> None:
        self.now += delta


def recording_sleep() -> tuple[list[float], Callable[[float], None]]:
    slept: list[float] = []
    return slept, slept.append
