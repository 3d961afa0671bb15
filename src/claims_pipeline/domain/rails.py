"""Rail identifiers, connector configuration and normalized rail results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from claims_pipeline.domain.claims import ClaimStatus


class Rail(StrEnum):
    """External claim submission channels."""

    TELUS_ECLAIMS = "telusEclaims"
    CDANET = "cdanet"
    PORTAL = "portal"


class ConnectorMode(StrEnum):
    """Whether a connector talks to the carrier or simulates it."""

    SANDBOX = "sandbox"
    LIVE = "live"


_RAIL_ALIASES = {
    "eclaims": Rail.TELUS_ECLAIMS,
    "telus": Rail.TELUS_ECLAIMS,
    "telus-eclaims": Rail.TELUS_ECLAIMS,
    "telus_eclaims": Rail.TELUS_ECLAIMS,
    "teluseclaims": Rail.TELUS_ECLAIMS,
    "cdanet": Rail.CDANET,
    "itrans": Rail.CDANET,
    "cdanet-itrans": Rail.CDANET,
    "portal": Rail.PORTAL,
}


def parse_rail(value: str) -> Rail:
    """Resolve a rail identifier or one of its common aliases."""

    normalized = value.strip()
    try:
        return Rail(normalized)
    except ValueError:
        pass
    alias = _RAIL_ALIASES.get(normalized.lower())
    if alias is None:
        allowed = ", ".join(rail.value for rail in Rail)
        raise ValueError(f"Unknown rail '{value}', expected one of: {allowed}.")
    return alias


@dataclass(slots=True, frozen=True)
class ConnectorConfig:
    """Per-organization credentials and mode for one rail."""

    org_id: str
    rail: Rail
    enabled: bool = True
    mode: ConnectorMode = ConnectorMode.SANDBOX
    endpoint: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)

    def setting(self, key: str) -> str | None:
        value = self.settings.get(key)
        if value is None:
            return None
        text = str(value).strip()
        return text or None


@dataclass(slots=True, frozen=True)
class RailResult:
    """Normalized outcome of one submit or poll exchange."""

    success: bool
    external_id: str | None = None
    status: ClaimStatus | None = None
    message: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ConnectorConfig",
    "ConnectorMode",
    "Rail",
    "RailResult",
    "parse_rail",
]
