"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from claims_pipeline.application.services import ClaimJobScheduler
from claims_pipeline.bootstrap import ClaimsPipeline, build_claims_pipeline
from claims_pipeline.config import Settings
from claims_pipeline.infrastructure.network import NetworkSafetyGate


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_claims_pipeline() -> ClaimsPipeline:
    """Return singleton component graph."""

    return build_claims_pipeline(get_settings())


def get_job_scheduler() -> ClaimJobScheduler:
    return get_claims_pipeline().scheduler


def get_outbound_client() -> NetworkSafetyGate:
    return get_claims_pipeline().outbound_client


__all__ = [
    "get_claims_pipeline",
    "get_job_scheduler",
    "get_outbound_client",
    "get_settings",
]
