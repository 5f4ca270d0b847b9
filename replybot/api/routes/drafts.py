"""Draft generation and approval routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from replybot.api.schemas import ApproveDraftRequest, GenerateDraftsRequest

router = APIRouter(prefix="/drafts", tags=["drafts"])


@router.post("/generate")
def generate_drafts(request: Request, body: Optional[GenerateDraftsRequest] = None) -> dict:
    """Draft replies for comments that have none; per-comment failures are in the body."""
    limit = body.limit if body is not None else None
    return request.app.state.service.generate_drafts_for_pending_comments(limit=limit)


@router.post("/{draft_id}/approve")
def approve_draft(request: Request, draft_id: str, body: ApproveDraftRequest) -> dict:
    """Approve a draft and queue the post-reply job."""
    result = request.app.state.service.approve_draft(draft_id, body.user_id)
    if not result["approved"]:
        status_code = 404 if result["draft"] is None else 409
        raise HTTPException(status_code=status_code, detail=result["error"])
    return result
