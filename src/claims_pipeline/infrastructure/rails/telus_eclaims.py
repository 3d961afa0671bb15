"""TELUS eClaims connector."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from urllib.parse import quote

from claims_pipeline.domain.claims import Claim, ClaimStatus
from claims_pipeline.domain.errors import ConnectorError, ErrorKind
from claims_pipeline.domain.ports import ClaimRepository, HttpClient
from claims_pipeline.domain.rails import ConnectorConfig, Rail, RailResult
from claims_pipeline.infrastructure.rails.base import BaseRailConnector
from claims_pipeline.infrastructure.rails.carrier_simulator import simulate_adjudication
from claims_pipeline.infrastructure.rails.mappers import (
    map_claim_to_eclaims,
    parse_eclaims_response,
)

logger = logging.getLogger(__name__)

SANDBOX_EXTERNAL_ID_PREFIX = "TELUS-SBX-"
_TOKEN_EXPIRY_MARGIN_SECONDS = 60.0
_TOKEN_SCOPE = "claims:submit claims:read"


class TelusEClaimsConnector(BaseRailConnector):
    """Submit JSON claims to TELUS eClaims using OAuth client credentials."""

    rail = Rail.TELUS_ECLAIMS
    display_name = "eClaims"
    live_required_settings = {
        "client_id": "eClaims client ID",
        "client_secret": "eClaims client secret",
    }

    def __init__(
        self,
        config: ConnectorConfig,
        http_client: HttpClient,
        claims: ClaimRepository,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(config, http_client, claims)
        self._clock = clock
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    async def validate(self, claim: Claim) -> None:
        self._validate_edi_parties(claim)
        await super().validate(claim)

    async def submit_claim(self, claim: Claim) -> RailResult:
        logger.info("Submitting claim '%s' via TELUS eClaims.", claim.claim_id)
        payload = map_claim_to_eclaims(claim)

        if self.is_sandbox:
            external_id = f"{SANDBOX_EXTERNAL_ID_PREFIX}{claim.claim_id}"
            return RailResult(
                success=True,
                external_id=external_id,
                status=ClaimStatus.SUBMITTED,
                message="Claim submitted successfully to TELUS eClaims sandbox",
                raw={
                    "success": True,
                    "claimId": external_id,
                    "submittedAt": datetime.now(tz=UTC).isoformat(),
                    "status": "submitted",
                    "sandbox": True,
                },
            )

        access_token = await self._get_access_token()
        response = await self._send(
            "POST",
            "/claims",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            json=payload,
        )
        parsed = parse_eclaims_response(response.body)
        if not parsed.success:
            raise ConnectorError(
                ErrorKind.PAYER_REJECT,
                parsed.message or "eClaims rejected the submission",
                {"errors": parsed.errors, "claimId": claim.claim_id},
            )
        return RailResult(
            success=True,
            external_id=parsed.external_id or f"TELUS-{claim.claim_id}",
            status=ClaimStatus.SUBMITTED,
            message=parsed.message,
            raw=response.body if isinstance(response.body, dict) else {},
        )

    async def poll_status(self, external_id: str) -> RailResult:
        if self.is_sandbox:
            claim = await self._load_sandbox_claim(external_id, SANDBOX_EXTERNAL_ID_PREFIX)
            simulated = simulate_adjudication(self.rail, claim.amount, claim.claim_id)
            logger.debug(
                "TELUS eClaims sandbox poll for '%s' returned '%s'.",
                external_id,
                simulated.status,
            )
            return RailResult(
                success=True,
                external_id=external_id,
                status=simulated.status,
                message=simulated.message,
                raw={**simulated.details, "polledAt": datetime.now(tz=UTC).isoformat()},
            )

        access_token = await self._get_access_token()
        response = await self._send(
            "GET",
            f"/claims/{quote(external_id, safe='')}/status",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        parsed = parse_eclaims_response(response.body)
        if parsed.status is None:
            raise ConnectorError(
                ErrorKind.UNKNOWN,
                parsed.message or "Unrecognized eClaims status response",
                {"externalId": external_id},
            )
        return RailResult(
            success=True,
            external_id=external_id,
            status=parsed.status,
            message=parsed.message,
            raw=response.body if isinstance(response.body, dict) else {},
        )

    async def _get_access_token(self) -> str:
        now = self._clock()
        if self._access_token is not None and now < self._token_expires_at:
            return self._access_token

        response = await self._send(
            "POST",
            "/oauth/token",
            headers={"Accept": "application/json"},
            data={
                "grant_type": "client_credentials",
                "client_id": self._config.setting("client_id") or "",
                "client_secret": self._config.setting("client_secret") or "",
                "scope": _TOKEN_SCOPE,
            },
        )
        body = response.body if isinstance(response.body, dict) else {}
        access_token = body.get("access_token")
        expires_in = body.get("expires_in")
        if not isinstance(access_token, str) or not access_token:
            raise ConnectorError(ErrorKind.AUTH_ERROR, "Failed to obtain OAuth token")
        try:
            lifetime = float(expires_in)
        except (TypeError, ValueError) as exc:
            raise ConnectorError(
                ErrorKind.AUTH_ERROR,
                "OAuth token response is missing a valid expires_in",
            ) from exc

        self._access_token = access_token
        self._token_expires_at = now + lifetime - _TOKEN_EXPIRY_MARGIN_SECONDS
        return access_token


__all__ = ["SANDBOX_EXTERNAL_ID_PREFIX", "TelusEClaimsConnector"]
