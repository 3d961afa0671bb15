"""In-memory claim and connector configuration repository."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import fields as dataclass_fields
from dataclasses import replace
from typing import Any

from claims_pipeline.domain.claims import Claim
from claims_pipeline.domain.ports import ClaimRepository, ConnectorConfigRepository
from claims_pipeline.domain.rails import ConnectorConfig, Rail

_UPDATABLE_FIELDS = frozenset(
    item.name for item in dataclass_fields(Claim) if item.name not in {"claim_id", "org_id"}
)


class InMemoryClaimRepository(ClaimRepository, ConnectorConfigRepository):
    """Simple repository for local development and tests."""

    def __init__(
        self,
        claims: Iterable[Claim] = (),
        connector_configs: Iterable[ConnectorConfig] = (),
    ) -> None:
        self._claims: dict[str, Claim] = {claim.claim_id: replace(claim) for claim in claims}
        self._connector_configs: dict[tuple[str, Rail], ConnectorConfig] = {
            (config.org_id, config.rail): config for config in connector_configs
        }
        self._lock = asyncio.Lock()

    async def add_claim(self, claim: Claim) -> None:
        """Store or replace a claim."""

        async with self._lock:
            self._claims[claim.claim_id] = replace(claim)

    async def add_connector_config(self, config: ConnectorConfig) -> None:
        """Store or replace the configuration of one rail for one organization."""

        async with self._lock:
            self._connector_configs[(config.org_id, config.rail)] = config

    async def get_claim(self, claim_id: str) -> Claim | None:
        """Return a copy of the stored claim."""

        async with self._lock:
            claim = self._claims.get(claim_id)
            return None if claim is None else replace(claim)

    async def update_claim(self, claim_id: str, fields: Mapping[str, Any]) -> Claim | None:
        """Apply a partial update; unknown claims yield `None`."""

        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported claim fields: {', '.join(sorted(unknown))}.")

        async with self._lock:
            claim = self._claims.get(claim_id)
            if claim is None:
                return None
            updated = replace(claim, **dict(fields))
            self._claims[claim_id] = updated
            return replace(updated)

    async def get_connector_config(self, org_id: str, rail: Rail) -> ConnectorConfig | None:
        return self._connector_configs.get((org_id, rail))


__all__ = ["InMemoryClaimRepository"]
