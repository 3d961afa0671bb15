"""Ports for persistence, connector resolution, rails and outbound HTTP."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from claims_pipeline.domain.claims import Claim
from claims_pipeline.domain.network import HttpResponse
from claims_pipeline.domain.rails import ConnectorConfig, Rail, RailResult


class ClaimRepository(Protocol):
    """Persistence collaborator for claims."""

    async def get_claim(self, claim_id: str) -> Claim | None:
        """Return a claim by id."""

    async def update_claim(self, claim_id: str, fields: Mapping[str, Any]) -> Claim | None:
        """Apply a partial update and return the updated claim."""


@runtime_checkable
class ConnectorConfigRepository(Protocol):
    """Configuration collaborator holding per-organization rail settings."""

    async def get_connector_config(self, org_id: str, rail: Rail) -> ConnectorConfig | None:
        """Return the rail configuration stored for an organization."""


class HttpClient(Protocol):
    """The single outbound network primitive used by every connector."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Send one request and return its response."""


class RailConnector(Protocol):
    """Submit and poll claims for one rail."""

    async def validate(self, claim: Claim) -> None:
        """Raise `ConnectorError` when the claim cannot be sent on this rail."""

    async def submit_claim(self, claim: Claim) -> RailResult:
        """Submit a claim and return the normalized outcome."""

    async def poll_status(self, external_id: str) -> RailResult:
        """Poll the external status of a previously submitted claim."""


class ConnectorFactory(Protocol):
    """Resolve a rail connector bound to an organization's configuration."""

    async def get_connector(self, rail: Rail, org_id: str) -> RailConnector:
        """Return a connector for `rail` configured for `org_id`."""


__all__ = [
    "ClaimRepository",
    "ConnectorConfigRepository",
    "ConnectorFactory",
    "HttpClient",
    "RailConnector",
]
