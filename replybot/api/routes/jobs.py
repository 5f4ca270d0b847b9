"""Job queue routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from replybot.api.schemas import JobEnqueueRequest, JobListResponse, JobResponse
from replybot.jobs.queue import JobStatus

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobResponse)
def enqueue_job(request: Request, body: JobEnqueueRequest) -> JobResponse:
    """Enqueue a job. Re-using an id of a finished job re-queues it."""
    try:
        job = request.app.state.service.enqueue_job(body.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JobResponse(**job)


@router.get("", response_model=JobListResponse)
def list_jobs(
    request: Request,
    status: Optional[JobStatus] = Query(None, description="Filter: QUEUED, RUNNING, SUCCEEDED, FAILED"),
    limit: int = Query(50, ge=1, le=1000),
) -> JobListResponse:
    """List jobs in creation order."""
    service = request.app.state.service
    jobs = service.list_jobs(status=status.value if status else None)
    return JobListResponse(jobs=[JobResponse(**j) for j in jobs[:limit]], total=len(jobs))


@router.get("/{job_id}", response_model=JobResponse)
def get_job(request: Request, job_id: str) -> JobResponse:
    job = request.app.state.service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse(**job)


@router.post("/run")
def run_jobs(request: Request, max_jobs: Optional[int] = Query(None, ge=1)) -> dict:
    """Run queued jobs synchronously (useful when no background worker is running)."""
    return request.app.state.service.run_pending_jobs(max_jobs)
