"""Pydantic models for the job management API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from claims_pipeline.domain.errors import ClassifiedError, ErrorKind
from claims_pipeline.domain.jobs import Job, JobKind, JobStatus
from claims_pipeline.domain.network import AllowlistDecision
from claims_pipeline.domain.rails import Rail


class JobApiModel(BaseModel):
    """Base model for job routes."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class EnqueueJobRequest(JobApiModel):
    """Request to enqueue a submit or poll-status job."""

    kind: str
    claim_id: str = Field(alias="claimId")
    rail: str
    payload: dict[str, Any] | None = None
    scheduled_at: datetime | None = Field(default=None, alias="scheduledAt")


class EnqueueJobResponse(JobApiModel):
    """Identifier of the newly enqueued job."""

    job_id: str = Field(alias="jobId")


class ClassifiedErrorResponse(JobApiModel):
    """Last error recorded on a job."""

    kind: ErrorKind
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    retriable: bool

    @classmethod
    def from_error(cls, error: ClassifiedError) -> ClassifiedErrorResponse:
        return cls(
            kind=error.kind,
            message=error.message,
            details=error.details,
            retriable=error.retriable,
        )


class JobResponse(JobApiModel):
    """Job snapshot exposed by management routes."""

    job_id: str = Field(alias="jobId")
    kind: JobKind
    claim_id: str = Field(alias="claimId")
    rail: Rail
    status: JobStatus
    attempts: int
    max_attempts: int = Field(alias="maxAttempts")
    created_at: datetime = Field(alias="createdAt")
    scheduled_at: datetime = Field(alias="scheduledAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    finished_at: datetime | None = Field(default=None, alias="finishedAt")
    last_error: ClassifiedErrorResponse | None = Field(default=None, alias="lastError")

    @classmethod
    def from_job(cls, job: Job) -> JobResponse:
        last_error = job.last_error
        return cls(
            job_id=job.job_id,
            kind=job.kind,
            claim_id=job.claim_id,
            rail=job.rail,
            status=job.status,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            created_at=job.created_at,
            scheduled_at=job.scheduled_at,
            updated_at=job.updated_at,
            finished_at=job.finished_at,
            last_error=(
                None if last_error is None else ClassifiedErrorResponse.from_error(last_error)
            ),
        )


class JobListResponse(JobApiModel):
    """All known jobs, newest first."""

    jobs: list[JobResponse] = Field(default_factory=list)


class CleanupRequest(JobApiModel):
    """Retention sweep request."""

    max_age_seconds: float = Field(default=86400.0, ge=0, alias="maxAgeSeconds")


class CleanupResponse(JobApiModel):
    """Number of terminal jobs removed."""

    removed: int


class AllowlistDecisionResponse(JobApiModel):
    """Safety gate verdict for one hostname."""

    hostname: str
    allowed: bool
    reason: str

    @classmethod
    def from_decision(cls, decision: AllowlistDecision) -> AllowlistDecisionResponse:
        return cls(hostname=decision.hostname, allowed=decision.allowed, reason=decision.reason)


__all__ = [
    "AllowlistDecisionResponse",
    "CleanupRequest",
    "CleanupResponse",
    "ClassifiedErrorResponse",
    "EnqueueJobRequest",
    "EnqueueJobResponse",
    "JobListResponse",
    "JobResponse",
]
