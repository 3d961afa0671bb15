"""Infrastructure layer public API."""

from claims_pipeline.infrastructure.network import (
    AllowlistPolicy,
    HttpxClient,
    NetworkSafetyGate,
)
from claims_pipeline.infrastructure.rails import (
    CdanetItransConnector,
    ConfiguredRailConnectorFactory,
    PortalConnector,
    TelusEClaimsConnector,
)
from claims_pipeline.infrastructure.repositories import (
    InMemoryClaimRepository,
    PostgresClaimRepository,
)

__all__ = [
    "AllowlistPolicy",
    "CdanetItransConnector",
    "ConfiguredRailConnectorFactory",
    "HttpxClient",
    "InMemoryClaimRepository",
    "NetworkSafetyGate",
    "PortalConnector",
    "PostgresClaimRepository",
    "TelusEClaimsConnector",
]
