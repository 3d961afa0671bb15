"""CDAnet connector submitting through the ITRANS network."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from urllib.parse import quote

from claims_pipeline.domain.claims import Claim, ClaimStatus
from claims_pipeline.domain.errors import ConnectorError, ErrorKind
from claims_pipeline.domain.rails import Rail, RailResult
from claims_pipeline.infrastructure.rails.base import BaseRailConnector
from claims_pipeline.infrastructure.rails.carrier_simulator import simulate_adjudication
from claims_pipeline.infrastructure.rails.mappers import (
    map_claim_to_cdanet,
    parse_cdanet_response,
)

logger = logging.getLogger(__name__)

SANDBOX_EXTERNAL_ID_PREFIX = "ITRANS-SBX-"
_DEFAULT_SOFTWARE_ID = "CLAIMSPIPE001"


class CdanetItransConnector(BaseRailConnector):
    """Send CDAnet transaction segments for dental claims."""

    rail = Rail.CDANET
    display_name = "CDAnet"
    live_required_settings = {
        "office_number": "ITRANS office number",
        "provider_number": "ITRANS provider number",
        "cert_path": "ITRANS certificate path",
    }

    async def validate(self, claim: Claim) -> None:
        self._validate_edi_parties(claim)
        await super().validate(claim)

    async def submit_claim(self, claim: Claim) -> RailResult:
        logger.info("Submitting claim '%s' via CDAnet/ITRANS.", claim.claim_id)
        segments = map_claim_to_cdanet(claim)

        if self.is_sandbox:
            external_id = f"{SANDBOX_EXTERNAL_ID_PREFIX}{claim.claim_id}"
            logger.info(
                "CDAnet sandbox submission accepted for claim '%s' (%s segments).",
                claim.claim_id,
                len(segments),
            )
            return RailResult(
                success=True,
                external_id=external_id,
                status=ClaimStatus.SUBMITTED,
                message="Claim submitted successfully to CDAnet sandbox",
                raw={
                    "ack": "AA",
                    "transactionId": external_id,
                    "timestamp": datetime.now(tz=UTC).isoformat(),
                    "segments": len(segments),
                },
            )

        response = await self._send(
            "POST",
            "/claims/submit",
            headers=self._itrans_headers(),
            json={
                "officeNumber": self._config.setting("office_number"),
                "segments": segments,
            },
        )
        parsed = parse_cdanet_response(response.body, response.text)
        if not parsed.success:
            raise ConnectorError(
                ErrorKind.PAYER_REJECT,
                parsed.message or "CDAnet rejected the submission",
                {"errors": parsed.errors, "claimId": claim.claim_id},
            )
        return RailResult(
            success=True,
            external_id=parsed.external_id or f"ITRANS-{claim.claim_id}",
            status=ClaimStatus.SUBMITTED,
            message=parsed.message,
            raw=response.body if isinstance(response.body, dict) else {"text": response.text},
        )

    async def poll_status(self, external_id: str) -> RailResult:
        if self.is_sandbox:
            claim = await self._load_sandbox_claim(external_id, SANDBOX_EXTERNAL_ID_PREFIX)
            simulated = simulate_adjudication(self.rail, claim.amount, claim.claim_id)
            return RailResult(
                success=True,
                external_id=external_id,
                status=simulated.status,
                message=simulated.message,
                raw={**simulated.details, "polledAt": datetime.now(tz=UTC).isoformat()},
            )

        response = await self._send(
            "GET",
            f"/claims/{quote(external_id, safe='')}/status",
            headers=self._itrans_headers(),
        )
        parsed = parse_cdanet_response(response.body, response.text)
        if parsed.status is None:
            raise ConnectorError(
                ErrorKind.UNKNOWN,
                parsed.message or "Unrecognized CDAnet status response",
                {"externalId": external_id},
            )
        return RailResult(
            success=True,
            external_id=external_id,
            status=parsed.status,
            message=parsed.message,
            raw=response.body if isinstance(response.body, dict) else {"text": response.text},
        )

    def _itrans_headers(self) -> dict[str, str]:
        return {
            "Provider-ID": self._config.setting("provider_number") or "",
            "Software-ID": self._config.setting("software_id") or _DEFAULT_SOFTWARE_ID,
            "Accept": "application/json",
        }


__all__ = ["CdanetItransConnector", "SANDBOX_EXTERNAL_ID_PREFIX"]
