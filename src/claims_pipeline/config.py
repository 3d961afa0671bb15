"""Application settings."""

import json
from enum import StrEnum
from typing import Annotated, Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from claims_pipeline.domain.network import DEFAULT_ALLOWED_PREFIXES, EdiMode


class RepositoryBackend(StrEnum):
    """Available persistence adapters for claims and connector settings."""

    IN_MEMORY = "in_memory"
    POSTGRES = "postgres"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Claims Submission Pipeline"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    edi_mode: EdiMode = EdiMode.SANDBOX
    outbound_allowlist: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_PREFIXES)
    )
    allow_production_domains: bool = False
    http_timeout_seconds: float = 30.0
    http_user_agent: str = "Claims-Pipeline/1.0"
    job_max_attempts: int = 3
    retry_base_delay_ms: int = 2000
    retry_max_delay_ms: int = 300_000
    retry_jitter_ratio: float = 0.1
    job_retention_seconds: float = 86_400.0
    job_cleanup_interval_seconds: float = 3_600.0
    repository_backend: RepositoryBackend = RepositoryBackend.IN_MEMORY
    postgres_dsn: str | None = None
    postgres_pool_min_size: int = 1
    postgres_pool_max_size: int = 10
    connector_configs: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("outbound_allowlist", mode="before")
    @classmethod
    def parse_csv_list(cls, value: object) -> object:
        """Support comma-separated env var values in addition to JSON arrays."""

        if not isinstance(value, str):
            return value
        if value.strip().startswith("["):
            return json.loads(value)
        return [item.strip() for item in value.split(",") if item.strip()]

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Reject inconsistent combinations before anything is wired."""

        if self.repository_backend == RepositoryBackend.POSTGRES and not self.postgres_dsn:
            raise ValueError(
                "CLAIMS_POSTGRES_DSN is required when CLAIMS_REPOSITORY_BACKEND=postgres."
            )
        if self.postgres_pool_min_size < 1:
            raise ValueError("CLAIMS_POSTGRES_POOL_MIN_SIZE must be >= 1.")
        if self.postgres_pool_max_size < self.postgres_pool_min_size:
            raise ValueError(
                "CLAIMS_POSTGRES_POOL_MAX_SIZE must be >= CLAIMS_POSTGRES_POOL_MIN_SIZE."
            )
        if self.edi_mode == EdiMode.SANDBOX and self.allow_production_domains:
            raise ValueError(
                "CLAIMS_ALLOW_PRODUCTION_DOMAINS cannot be enabled when CLAIMS_EDI_MODE=sandbox."
            )
        if self.http_timeout_seconds <= 0:
            raise ValueError("CLAIMS_HTTP_TIMEOUT_SECONDS must be > 0.")
        if self.job_max_attempts < 1:
            raise ValueError("CLAIMS_JOB_MAX_ATTEMPTS must be >= 1.")
        if self.retry_base_delay_ms < 0:
            raise ValueError("CLAIMS_RETRY_BASE_DELAY_MS must be >= 0.")
        if self.retry_max_delay_ms < self.retry_base_delay_ms:
            raise ValueError("CLAIMS_RETRY_MAX_DELAY_MS must be >= CLAIMS_RETRY_BASE_DELAY_MS.")
        if not 0 <= self.retry_jitter_ratio <= 1:
            raise ValueError("CLAIMS_RETRY_JITTER_RATIO must be between 0 and 1.")
        if self.job_retention_seconds < 0:
            raise ValueError("CLAIMS_JOB_RETENTION_SECONDS must be >= 0.")
        if self.job_cleanup_interval_seconds <= 0:
            raise ValueError("CLAIMS_JOB_CLEANUP_INTERVAL_SECONDS must be > 0.")
        return self

    model_config = SettingsConfigDict(env_prefix="CLAIMS_", extra="ignore")


__all__ = ["RepositoryBackend", "Settings"]
