"""Application services public API."""

from claims_pipeline.application.services.job_scheduler import ClaimJobScheduler

__all__ = ["ClaimJobScheduler"]
