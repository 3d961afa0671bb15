"""Rail connector implementations."""

from claims_pipeline.infrastructure.rails.base import BaseRailConnector
from claims_pipeline.infrastructure.rails.cdanet_itrans import CdanetItransConnector
from claims_pipeline.infrastructure.rails.factory import ConfiguredRailConnectorFactory
from claims_pipeline.infrastructure.rails.portal import PortalConnector
from claims_pipeline.infrastructure.rails.telus_eclaims import TelusEClaimsConnector

__all__ = [
    "BaseRailConnector",
    "CdanetItransConnector",
    "ConfiguredRailConnectorFactory",
    "PortalConnector",
    "TelusEClaimsConnector",
]
