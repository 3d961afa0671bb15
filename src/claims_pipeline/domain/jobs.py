"""Asynchronous claim job models and status transitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from claims_pipeline.domain.errors import ClassifiedError, JobStateError
from claims_pipeline.domain.rails import Rail


class JobKind(StrEnum):
    """Unit of work performed against a rail."""

    SUBMIT = "submit"
    POLL_STATUS = "poll-status"


class JobStatus(StrEnum):
    """Job lifecycle states."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.QUEUED}),
    JobStatus.SUCCEEDED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass(slots=True)
class Job:
    """Mutable job record owned by the scheduler."""

    job_id: str
    kind: JobKind
    claim_id: str
    rail: Rail
    created_at: datetime
    scheduled_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    max_attempts: int = 3
    last_error: ClassifiedError | None = None
    updated_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def transition_to(self, status: JobStatus, at: datetime) -> None:
        """Move to `status`, rejecting moves outside the state machine."""

        ensure_job_transition(self.status, status)
        self.status = status
        self.updated_at = at
        if status in TERMINAL_JOB_STATUSES:
            self.finished_at = at


def ensure_job_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise when `current -> target` is not a legal job transition."""

    if target not in _ALLOWED_TRANSITIONS[current]:
        raise JobStateError(f"Job cannot move from '{current}' to '{target}'.")


def parse_job_kind(value: str) -> JobKind:
    """Parse a job kind literal, accepting the underscore spelling too."""

    normalized = value.strip().lower().replace("_", "-")
    try:
        return JobKind(normalized)
    except ValueError:
        allowed = ", ".join(kind.value for kind in JobKind)
        raise ValueError(f"Unsupported job kind '{value}', expected one of: {allowed}.") from None


__all__ = [
    "Job",
    "JobKind",
    "JobStatus",
    "TERMINAL_JOB_STATUSES",
    "ensure_job_transition",
    "parse_job_kind",
]
