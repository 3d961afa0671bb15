"""Resolve rail connectors from per-organization configuration."""

from __future__ import annotations

import logging

from claims_pipeline.domain.errors import ConnectorError, ErrorKind
from claims_pipeline.domain.ports import (
    ClaimRepository,
    ConnectorConfigRepository,
    ConnectorFactory,
    HttpClient,
    RailConnector,
)
from claims_pipeline.domain.rails import Rail
from claims_pipeline.infrastructure.rails.base import BaseRailConnector
from claims_pipeline.infrastructure.rails.cdanet_itrans import CdanetItransConnector
from claims_pipeline.infrastructure.rails.portal import PortalConnector
from claims_pipeline.infrastructure.rails.telus_eclaims import TelusEClaimsConnector

logger = logging.getLogger(__name__)

_CONNECTOR_TYPES: dict[Rail, type[BaseRailConnector]] = {
    Rail.TELUS_ECLAIMS: TelusEClaimsConnector,
    Rail.CDANET: CdanetItransConnector,
    Rail.PORTAL: PortalConnector,
}


class ConfiguredRailConnectorFactory(ConnectorFactory):
    """Build connectors bound to the stored configuration of an organization.

    Every connector receives the same outbound client, which the bootstrap
    always wraps in the network safety gate. One connector, and with it its
    cached OAuth token, is kept per organization and rail until the stored
    configuration changes.
    """

    def __init__(
        self,
        config_repository: ConnectorConfigRepository,
        http_client: HttpClient,
        claims: ClaimRepository,
    ) -> None:
        self._config_repository = config_repository
        self._http_client = http_client
        self._claims = claims
        self._connectors: dict[tuple[str, Rail], BaseRailConnector] = {}

    async def get_connector(self, rail: Rail, org_id: str) -> RailConnector:
        connector_type = _CONNECTOR_TYPES.get(rail)
        if connector_type is None:
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                f"Unknown connector: {rail}",
                {"rail": str(rail)},
            )

        key = (org_id, rail)
        config = await self._config_repository.get_connector_config(org_id, rail)
        if config is None or not config.enabled:
            self._connectors.pop(key, None)
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                f"{rail.value} connector not enabled for organization",
                {"rail": rail.value, "orgId": org_id},
            )

        cached = self._connectors.get(key)
        if cached is not None and cached.config == config:
            return cached

        logger.debug(
            "Resolved %s connector for organization '%s' in %s mode.",
            rail.value,
            org_id,
            config.mode.value,
        )
        connector = connector_type(config, self._http_client, self._claims)
        self._connectors[key] = connector
        return connector


__all__ = ["ConfiguredRailConnectorFactory"]
