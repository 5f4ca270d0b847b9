"""Health and stats routes."""

from __future__ import annotations

from fastapi import APIRouter, Request

from replybot.api.schemas import StatsResponse

router = APIRouter(tags=["system"])


@router.get("/health")
def health() -> dict:
    """Simple liveness check."""
    return {"status": "ok"}


@router.get("/stats", response_model=StatsResponse)
def stats(request: Request) -> StatsResponse:
    """Index status counts, job status counts and live rate-limit buckets."""
    service = request.app.state.service
    limiters = service.limiters.all() if service.limiters is not None else []

    return StatsResponse(
        video_indexes=service.index_store.count_by_status(),
        jobs=service.queue.counts(),
        rate_limit_buckets=sum(limiter.bucket_count for limiter in limiters),
    )
