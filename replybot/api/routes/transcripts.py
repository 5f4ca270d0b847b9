"""Video transcript indexing routes."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from replybot.api.schemas import EnsureIndexRequest

router = APIRouter(prefix="/transcripts", tags=["transcripts"])


@router.post("/ensure")
def ensure_video_index(request: Request, body: EnsureIndexRequest) -> dict:
    """Index one video. Failures are reported in the body, not as HTTP errors."""
    return request.app.state.service.ensure_video_index(body.video_id, force_reindex=body.force_reindex)


@router.post("/ensure-missing")
def ensure_missing(request: Request) -> dict:
    """Index every known video with no usable index and summarize the outcomes."""
    return request.app.state.service.ensure_missing()


@router.get("/{video_id}")
def get_video_index(request: Request, video_id: str) -> dict:
    record = request.app.state.service.get_video_index(video_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Video index not found")
    return record
