"""Repository implementations."""

from claims_pipeline.infrastructure.repositories.in_memory_claim_repository import (
    InMemoryClaimRepository,
)
from claims_pipeline.infrastructure.repositories.postgres_claim_repository import (
    PostgresClaimRepository,
)

__all__ = ["InMemoryClaimRepository", "PostgresClaimRepository"]
