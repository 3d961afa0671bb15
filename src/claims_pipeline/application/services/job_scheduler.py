"""In-process scheduler for claim submission and status polling jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from claims_pipeline.domain.claims import Claim, ClaimStatus
from claims_pipeline.domain.error_classifier import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    classify_exception,
)
from claims_pipeline.domain.errors import (
    ConnectorError,
    ErrorKind,
    JobError,
    JobValidationError,
)
from claims_pipeline.domain.jobs import Job, JobKind, JobStatus, parse_job_kind
from claims_pipeline.domain.ports import ClaimRepository, ConnectorFactory, RailConnector
from claims_pipeline.domain.rails import Rail, parse_rail

logger = logging.getLogger(__name__)

_DEFAULT_RETENTION_SECONDS = 24 * 60 * 60
_DEFAULT_CLEANUP_INTERVAL_SECONDS = 60 * 60


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class ClaimJobScheduler:
    """Run claim jobs asynchronously with bounded, classified retries.

    Jobs live only in memory. Due jobs are armed with `loop.call_later` and
    executed as tasks; the running set guarantees a single execution per job
    id at any instant. The scheduler is the only place that decides whether a
    failure is retried.
    """

    def __init__(
        self,
        claims: ClaimRepository,
        connector_factory: ConnectorFactory,
        *,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        max_attempts: int = 3,
        retention_seconds: float = _DEFAULT_RETENTION_SECONDS,
        cleanup_interval_seconds: float = _DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._claims = claims
        self._connector_factory = connector_factory
        self._retry_policy = retry_policy
        self._max_attempts = max_attempts
        self._retention_seconds = max(retention_seconds, 0.0)
        self._cleanup_interval_seconds = max(cleanup_interval_seconds, 0.01)

        self._jobs: dict[str, Job] = {}
        self._running: set[str] = set()
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[bool]] = set()

        self._cleanup_task: asyncio.Task[None] | None = None
        self._stopping: asyncio.Event | None = None
        self._lifecycle_lock = asyncio.Lock()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def enqueue(
        self,
        kind: JobKind | str,
        claim_id: str,
        rail: Rail | str,
        payload: Mapping[str, Any] | None = None,
        scheduled_at: datetime | None = None,
    ) -> str:
        """Register a job and arm it; returns the job id without waiting."""

        if self._stopping is not None and self._stopping.is_set():
            raise JobError("Scheduler is shut down; no new jobs are accepted.")
        job_kind = self._validated_kind(kind)
        job_rail = self._validated_rail(rail)
        if not isinstance(claim_id, str) or not claim_id.strip():
            raise JobValidationError("Claim id must be a non-empty string.")
        if payload is not None and not isinstance(payload, Mapping):
            raise JobValidationError("Job payload must be a mapping.")

        now = _utcnow()
        due_at = now if scheduled_at is None else self._as_aware(scheduled_at)
        job = Job(
            job_id=self._new_job_id(now),
            kind=job_kind,
            claim_id=claim_id.strip(),
            rail=job_rail,
            created_at=now,
            scheduled_at=due_at,
            payload=dict(payload or {}),
            max_attempts=self._max_attempts,
            updated_at=now,
        )
        self._jobs[job.job_id] = job
        logger.info(
            "Enqueued %s job '%s' for claim '%s' on rail '%s'.",
            job.kind.value,
            job.job_id,
            job.claim_id,
            job.rail.value,
            extra=self._log_extra(job),
        )
        self._arm(job.job_id, self._seconds_until(due_at, now))
        return job.job_id

    def get_status(self, job_id: str) -> Job | None:
        """Return a snapshot of one job."""

        job = self._jobs.get(job_id)
        return None if job is None else self._snapshot(job)

    def list_jobs(self) -> list[Job]:
        """Return snapshots of all known jobs, newest first."""

        jobs = sorted(self._jobs.values(), key=lambda job: job.created_at, reverse=True)
        return [self._snapshot(job) for job in jobs]

    def cleanup(self, max_age_seconds: float | None = None) -> int:
        """Drop terminal jobs created before the age threshold."""

        max_age = self._retention_seconds if max_age_seconds is None else max_age_seconds
        threshold = _utcnow() - timedelta(seconds=max(max_age, 0.0))
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.is_terminal and job.created_at < threshold and job_id not in self._running
        ]
        for job_id in expired:
            del self._jobs[job_id]
            timer = self._timers.pop(job_id, None)
            if timer is not None:
                timer.cancel()
        if expired:
            logger.info("Removed %s finished job(s) older than %ss.", len(expired), max_age)
        return len(expired)

    async def process(self, job_id: str) -> bool:
        """Run one attempt of a due job.

        Returns False when the job is unknown, not queued, already running or
        not yet due; a job that is not yet due is re-armed for the remaining
        delay without consuming an attempt.
        """

        if job_id in self._running:
            logger.debug("Job '%s' is already running; skipping.", job_id)
            return False
        job = self._jobs.get(job_id)
        if job is None or job.status is not JobStatus.QUEUED:
            return False

        now = _utcnow()
        if job.scheduled_at > now:
            self._arm(job_id, self._seconds_until(job.scheduled_at, now))
            return False

        self._running.add(job_id)
        try:
            job.attempts += 1
            job.transition_to(JobStatus.RUNNING, now)
            logger.info(
                "Running %s job '%s' (attempt %s/%s).",
                job.kind.value,
                job.job_id,
                job.attempts,
                job.max_attempts,
                extra=self._log_extra(job),
            )
            try:
                await self._execute(job)
            except Exception as exc:
                self._handle_failure(job, exc)
            else:
                job.last_error = None
                job.transition_to(JobStatus.SUCCEEDED, _utcnow())
                logger.info(
                    "Job '%s' succeeded after %s attempt(s).",
                    job.job_id,
                    job.attempts,
                    extra=self._log_extra(job),
                )
        finally:
            self._running.discard(job_id)
        return True

    async def startup(self) -> None:
        """Start the periodic retention sweep if not already running."""

        async with self._lifecycle_lock:
            task = self._cleanup_task
            if task is not None and not task.done():
                return
            self._stopping = asyncio.Event()
            self._cleanup_task = asyncio.create_task(
                self._run_cleanup_loop(self._stopping),
                name="claim-job-retention-sweep",
            )

    async def shutdown(self) -> None:
        """Stop the sweep, disarm timers and wait for in-flight executions."""

        async with self._lifecycle_lock:
            task = self._cleanup_task
            self._cleanup_task = None
            if self._stopping is not None:
                self._stopping.set()
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()

        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        in_flight = list(self._tasks)
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

    async def _execute(self, job: Job) -> None:
        claim = await self._claims.get_claim(job.claim_id)
        if claim is None:
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                f"Claim {job.claim_id} not found",
                {"claimId": job.claim_id},
            )
        connector = await self._connector_factory.get_connector(job.rail, claim.org_id)
        if job.kind is JobKind.SUBMIT:
            await self._submit(job, claim, connector)
            return
        await self._poll(job, claim, connector)

    async def _submit(self, job: Job, claim: Claim, connector: RailConnector) -> None:
        await connector.validate(claim)
        result = await connector.submit_claim(claim)
        if not result.success or not result.external_id:
            raise ConnectorError(
                ErrorKind.PAYER_REJECT,
                result.message or "Rail did not accept the submission",
                {"claimId": claim.claim_id, "rail": job.rail.value},
            )

        fields: dict[str, Any] = {
            "status": ClaimStatus.SUBMITTED,
            "external_id": result.external_id,
        }
        reference_number = result.raw.get("referenceNumber")
        if isinstance(reference_number, str) and reference_number:
            fields["reference_number"] = reference_number
        await self._claims.update_claim(claim.claim_id, fields)

    async def _poll(self, job: Job, claim: Claim, connector: RailConnector) -> None:
        if not claim.external_id:
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                "Claim has no external ID for status polling",
                {"claimId": claim.claim_id},
            )
        result = await connector.poll_status(claim.external_id)
        if result.status is not None and result.status != claim.status:
            await self._claims.update_claim(claim.claim_id, {"status": result.status})
            logger.info(
                "Claim '%s' moved from '%s' to '%s'.",
                claim.claim_id,
                claim.status.value,
                result.status.value,
                extra=self._log_extra(job),
            )

    def _handle_failure(self, job: Job, exc: Exception) -> None:
        error = classify_exception(exc)
        job.last_error = error
        now = _utcnow()
        extra = {**self._log_extra(job), "error_kind": error.kind.value}

        if error.retriable and job.attempts < job.max_attempts:
            delay_ms = self._retry_policy.delay_ms(job.attempts)
            job.scheduled_at = now + timedelta(milliseconds=delay_ms)
            job.transition_to(JobStatus.QUEUED, now)
            logger.warning(
                "Job '%s' failed with %s (attempt %s/%s); retrying in %sms: %s",
                job.job_id,
                error.kind.value,
                job.attempts,
                job.max_attempts,
                delay_ms,
                error.message,
                extra={**extra, "delay_ms": delay_ms},
            )
            self._arm(job.job_id, delay_ms / 1000)
            return

        job.transition_to(JobStatus.FAILED, now)
        logger.error(
            "Job '%s' failed permanently with %s after %s attempt(s): %s",
            job.job_id,
            error.kind.value,
            job.attempts,
            error.message,
            extra=extra,
            exc_info=None if isinstance(exc, ConnectorError) else exc,
        )

    def _arm(self, job_id: str, delay_seconds: float) -> None:
        loop = asyncio.get_running_loop()
        previous = self._timers.pop(job_id, None)
        if previous is not None:
            previous.cancel()
        self._timers[job_id] = loop.call_later(max(delay_seconds, 0.0), self._spawn, job_id)

    def _spawn(self, job_id: str) -> None:
        self._timers.pop(job_id, None)
        if self._stopping is not None and self._stopping.is_set():
            logger.debug("Scheduler is stopping; not running job '%s'.", job_id)
            return
        task = asyncio.create_task(self.process(job_id), name=f"claim-job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_cleanup_loop(self, stopping: asyncio.Event) -> None:
        while not stopping.is_set():
            try:
                await asyncio.wait_for(stopping.wait(), timeout=self._cleanup_interval_seconds)
            except TimeoutError:
                pass
            if stopping.is_set():
                return
            try:
                self.cleanup()
            except Exception:
                logger.exception("Claim job retention sweep failed.")

    def _validated_kind(self, kind: JobKind | str) -> JobKind:
        if isinstance(kind, JobKind):
            return kind
        if not isinstance(kind, str):
            raise JobValidationError("Job kind must be a string.")
        try:
            return parse_job_kind(kind)
        except ValueError as exc:
            raise JobValidationError(str(exc)) from exc

    def _validated_rail(self, rail: Rail | str) -> Rail:
        if isinstance(rail, Rail):
            return rail
        if not isinstance(rail, str):
            raise JobValidationError("Rail must be a string.")
        try:
            return parse_rail(rail)
        except ValueError as exc:
            raise JobValidationError(str(exc)) from exc

    def _as_aware(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def _seconds_until(self, due_at: datetime, now: datetime) -> float:
        return max((due_at - now).total_seconds(), 0.0)

    def _new_job_id(self, now: datetime) -> str:
        return f"job_{int(now.timestamp() * 1000)}_{uuid4().hex[:9]}"

    def _snapshot(self, job: Job) -> Job:
        return replace(job, payload=dict(job.payload))

    def _log_extra(self, job: Job) -> dict[str, Any]:
        return {
            "job_id": job.job_id,
            "job_kind": job.kind.value,
            "claim_id": job.claim_id,
            "rail": job.rail.value,
            "attempt": job.attempts,
        }


__all__ = ["ClaimJobScheduler"]
