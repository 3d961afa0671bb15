"""Manual insurer portal connector."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from claims_pipeline.domain.claims import Claim, ClaimStatus
from claims_pipeline.domain.rails import Rail, RailResult
from claims_pipeline.infrastructure.rails.base import BaseRailConnector

logger = logging.getLogger(__name__)


class PortalConnector(BaseRailConnector):
    """Prepare claims for manual entry; no outbound traffic."""

    rail = Rail.PORTAL
    display_name = "Portal"

    async def validate(self, claim: Claim) -> None:
        self._require(claim.claim_id, "Claim ID is required")
        self._require(claim.patient_id, "Patient ID is required")
        self._require(claim.provider_id, "Provider ID is required")
        if not claim.codes:
            self._fail("At least one service is required", claim)

    async def submit_claim(self, claim: Claim) -> RailResult:
        now = datetime.now(tz=UTC)
        external_id = f"PORTAL-{claim.claim_id}-{int(now.timestamp() * 1000)}"
        logger.info(
            "Claim '%s' prepared for manual portal submission as '%s'.",
            claim.claim_id,
            external_id,
        )
        return RailResult(
            success=True,
            external_id=external_id,
            status=ClaimStatus.SUBMITTED,
            message="Claim prepared for manual portal submission",
            raw={"submittedAt": now.isoformat(), "method": "portal"},
        )

    async def poll_status(self, external_id: str) -> RailResult:
        return RailResult(
            success=True,
            external_id=external_id,
            status=ClaimStatus.PENDING,
            message="Portal claims require manual status updates",
            raw={"lastChecked": datetime.now(tz=UTC).isoformat()},
        )


__all__ = ["PortalConnector"]
