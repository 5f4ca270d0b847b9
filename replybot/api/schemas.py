"""Pydantic response/request models for the API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class EnsureIndexRequest(BaseModel):
    """Request body for indexing one video."""

    video_id: str = Field(..., min_length=1, max_length=64)
    force_reindex: bool = False


class GenerateDraftsRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=1000)


class ApproveDraftRequest(BaseModel):
    """Caller identity comes from the (external) auth layer."""

    user_id: str = Field(..., min_length=1)


class JobEnqueueRequest(BaseModel):
    """Request body for enqueuing a job under a caller-chosen id."""

    id: str = Field(..., min_length=1, max_length=200)
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class JobResponse(BaseModel):
    """A single job record."""

    id: str
    type: str
    payload: dict[str, Any]
    status: str
    createdAt: str
    startedAt: Optional[str] = None
    completedAt: Optional[str] = None
    error: Optional[str] = None
    result: Optional[dict[str, Any]] = None
    attempts: int = 0
    retryable: bool = True


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int


class StatsResponse(BaseModel):
    """System statistics."""

    video_indexes: dict[str, int]
    jobs: dict[str, int]
    rate_limit_buckets: int
