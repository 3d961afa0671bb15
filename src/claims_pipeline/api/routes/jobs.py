"""Claim job routes."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, Response

from claims_pipeline.api.dependencies import get_job_scheduler
from claims_pipeline.application.services import ClaimJobScheduler
from claims_pipeline.domain.errors import JobError, JobNotFoundError, JobValidationError
from claims_pipeline.domain.job_models import (
    CleanupRequest,
    CleanupResponse,
    EnqueueJobRequest,
    EnqueueJobResponse,
    JobListResponse,
    JobResponse,
)

router = APIRouter(prefix="/jobs", tags=["claim jobs"])


def _raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, JobNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, JobValidationError):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, JobError):
        raise HTTPException(status_code=503, detail=str(exc))
    raise HTTPException(status_code=500, detail="Unexpected job error")


@router.post("", response_model=EnqueueJobResponse, status_code=202)
async def enqueue_job(
    request: EnqueueJobRequest,
    response: Response,
    scheduler: ClaimJobScheduler = Depends(get_job_scheduler),
) -> EnqueueJobResponse:
    """Enqueue a submit or poll-status job; processing happens in the background."""

    try:
        job_id = await scheduler.enqueue(
            request.kind,
            request.claim_id,
            request.rail,
            payload=request.payload,
            scheduled_at=request.scheduled_at,
        )
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    response.headers["Location"] = f"{router.prefix}/{job_id}"
    return EnqueueJobResponse(job_id=job_id)


@router.get("", response_model=JobListResponse, status_code=200)
async def list_jobs(
    scheduler: ClaimJobScheduler = Depends(get_job_scheduler),
) -> JobListResponse:
    """List known jobs, newest first."""

    return JobListResponse(jobs=[JobResponse.from_job(job) for job in scheduler.list_jobs()])


@router.post("/cleanup", response_model=CleanupResponse, status_code=200)
async def cleanup_jobs(
    request: CleanupRequest | None = None,
    scheduler: ClaimJobScheduler = Depends(get_job_scheduler),
) -> CleanupResponse:
    """Remove finished jobs older than the requested age."""

    max_age_seconds = None if request is None else request.max_age_seconds
    return CleanupResponse(removed=scheduler.cleanup(max_age_seconds))


@router.get("/{id}", response_model=JobResponse, status_code=200)
async def get_job(
    id: str = Path(...),
    scheduler: ClaimJobScheduler = Depends(get_job_scheduler),
) -> JobResponse:
    """Return the current snapshot of one job."""

    try:
        job = scheduler.get_status(id)
        if job is None:
            raise JobNotFoundError(f"Job '{id}' not found.")
        return JobResponse.from_job(job)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


__all__ = ["router"]
