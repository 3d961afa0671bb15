"""Application bootstrap/wiring."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from claims_pipeline.application.services import ClaimJobScheduler
from claims_pipeline.config import RepositoryBackend, Settings
from claims_pipeline.domain.error_classifier import RetryPolicy
from claims_pipeline.domain.rails import ConnectorConfig, ConnectorMode, parse_rail
from claims_pipeline.infrastructure.network import (
    AllowlistPolicy,
    HttpxClient,
    NetworkSafetyGate,
)
from claims_pipeline.infrastructure.rails import ConfiguredRailConnectorFactory
from claims_pipeline.infrastructure.repositories import (
    InMemoryClaimRepository,
    PostgresClaimRepository,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ClaimsPipeline:
    """Wired components shared by the HTTP surface and its lifespan."""

    scheduler: ClaimJobScheduler
    outbound_client: NetworkSafetyGate
    repository: InMemoryClaimRepository | PostgresClaimRepository

    def verify_startup_posture(self) -> None:
        self.outbound_client.policy.verify_startup_posture()

    async def startup(self) -> None:
        self.verify_startup_posture()
        await self.scheduler.startup()

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
        if isinstance(self.repository, PostgresClaimRepository):
            await self.repository.close()


def _parse_connector_config(raw: Mapping[str, Any]) -> ConnectorConfig:
    org_id = raw.get("orgId", raw.get("org_id"))
    rail = raw.get("rail", raw.get("name"))
    if not isinstance(org_id, str) or not org_id.strip():
        raise ValueError("Connector config requires a non-empty 'orgId'.")
    if not isinstance(rail, str):
        raise ValueError("Connector config requires a 'rail'.")
    settings = raw.get("settings") or {}
    if not isinstance(settings, Mapping):
        raise ValueError("Connector config 'settings' must be an object.")
    return ConnectorConfig(
        org_id=org_id.strip(),
        rail=parse_rail(rail),
        enabled=bool(raw.get("enabled", True)),
        mode=ConnectorMode(str(raw.get("mode", ConnectorMode.SANDBOX.value))),
        endpoint=raw.get("endpoint"),
        settings=dict(settings),
    )


def _parse_connector_configs(raw_configs: Iterable[Mapping[str, Any]]) -> list[ConnectorConfig]:
    return [_parse_connector_config(raw) for raw in raw_configs]


def _build_repository(settings: Settings) -> InMemoryClaimRepository | PostgresClaimRepository:
    if settings.repository_backend == RepositoryBackend.POSTGRES:
        if settings.postgres_dsn is None:
            raise ValueError(
                "CLAIMS_POSTGRES_DSN is required when CLAIMS_REPOSITORY_BACKEND=postgres."
            )
        if settings.connector_configs:
            logger.warning(
                "CLAIMS_CONNECTOR_CONFIGS is ignored with the postgres backend; "
                "connector settings are read from the connector_configs table."
            )
        return PostgresClaimRepository(
            dsn=settings.postgres_dsn,
            min_pool_size=settings.postgres_pool_min_size,
            max_pool_size=settings.postgres_pool_max_size,
        )
    return InMemoryClaimRepository(
        connector_configs=_parse_connector_configs(settings.connector_configs),
    )


def build_outbound_policy(settings: Settings) -> AllowlistPolicy:
    """Build the outbound allowlist policy from settings."""

    return AllowlistPolicy(
        mode=settings.edi_mode,
        allowed_prefixes=settings.outbound_allowlist,
        allow_production_domains=settings.allow_production_domains,
    )


def build_outbound_http_client(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> NetworkSafetyGate:
    """Build the only outbound HTTP client: httpx wrapped by the safety gate."""

    return NetworkSafetyGate(
        inner=HttpxClient(
            timeout_seconds=settings.http_timeout_seconds,
            user_agent=settings.http_user_agent,
            transport=transport,
        ),
        policy=build_outbound_policy(settings),
    )


def build_claims_pipeline(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ClaimsPipeline:
    """Compose scheduler, connector factory, outbound client and repository."""

    repository = _build_repository(settings)
    outbound_client = build_outbound_http_client(settings, transport=transport)
    connector_factory = ConfiguredRailConnectorFactory(
        config_repository=repository,
        http_client=outbound_client,
        claims=repository,
    )
    scheduler = ClaimJobScheduler(
        claims=repository,
        connector_factory=connector_factory,
        retry_policy=RetryPolicy(
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            jitter_ratio=settings.retry_jitter_ratio,
        ),
        max_attempts=settings.job_max_attempts,
        retention_seconds=settings.job_retention_seconds,
        cleanup_interval_seconds=settings.job_cleanup_interval_seconds,
    )
    logger.info(
        "Claims pipeline wired with %s repository in EDI %s mode.",
        settings.repository_backend.value,
        settings.edi_mode.value,
    )
    return ClaimsPipeline(
        scheduler=scheduler,
        outbound_client=outbound_client,
        repository=repository,
    )


__all__ = [
    "ClaimsPipeline",
    "build_claims_pipeline",
    "build_outbound_http_client",
    "build_outbound_policy",
]
