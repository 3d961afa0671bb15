"""Shared behaviour of the rail connectors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar, NoReturn

from claims_pipeline.domain.claims import Claim
from claims_pipeline.domain.error_classifier import classify_status
from claims_pipeline.domain.errors import ConnectorError, ErrorKind
from claims_pipeline.domain.network import HttpResponse
from claims_pipeline.domain.ports import ClaimRepository, HttpClient, RailConnector
from claims_pipeline.domain.rails import ConnectorConfig, ConnectorMode, Rail, RailResult

logger = logging.getLogger(__name__)


class BaseRailConnector(RailConnector, ABC):
    """Connector bound to one organization's rail configuration.

    Subclasses declare the rail they serve and the settings they require in
    live mode. All outbound traffic goes through the injected `HttpClient`.
    """

    rail: ClassVar[Rail]
    display_name: ClassVar[str]
    live_required_settings: ClassVar[Mapping[str, str]] = {}

    def __init__(
        self,
        config: ConnectorConfig,
        http_client: HttpClient,
        claims: ClaimRepository,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._claims = claims

    @property
    def config(self) -> ConnectorConfig:
        return self._config

    @property
    def is_sandbox(self) -> bool:
        return self._config.mode is ConnectorMode.SANDBOX

    async def validate(self, claim: Claim) -> None:
        self._validate_claim(claim)
        if not self.is_sandbox:
            self._require_live_settings()
        logger.debug(
            "%s validation passed for claim '%s'.",
            self.display_name,
            claim.claim_id,
        )

    @abstractmethod
    async def submit_claim(self, claim: Claim) -> RailResult:
        """Submit a claim on this rail."""

    @abstractmethod
    async def poll_status(self, external_id: str) -> RailResult:
        """Poll a previously submitted claim."""

    def _validate_claim(self, claim: Claim) -> None:
        self._require(claim.claim_id, "Claim ID is required")
        self._require(claim.patient_id, "Patient ID is required")
        self._require(claim.provider_id, "Provider ID is required")
        self._require(claim.insurer_id, "Insurer ID is required")
        if claim.amount is None or claim.amount <= 0:
            self._fail("Valid claim amount is required", claim)

    def _validate_edi_parties(self, claim: Claim) -> None:
        if claim.provider is None:
            self._fail("Provider not found", claim)
        if not claim.provider.licence_number:
            self._fail(
                f"Provider licence number is required for {self.display_name}",
                claim,
            )
        if claim.patient is None:
            self._fail("Patient not found", claim)
        if claim.patient.date_of_birth is None:
            self._fail(
                f"Patient date of birth is required for {self.display_name}",
                claim,
            )

    def _require_live_settings(self) -> None:
        for key, label in self.live_required_settings.items():
            if self._config.setting(key) is None:
                raise ConnectorError(
                    ErrorKind.VALIDATION_ERROR,
                    f"{label} not configured",
                    {"rail": self.rail.value, "setting": key},
                )
        if not self._config.endpoint:
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                f"{self.display_name} endpoint not configured",
                {"rail": self.rail.value},
            )

    def _require(self, value: object, message: str) -> None:
        if not value:
            raise ConnectorError(ErrorKind.VALIDATION_ERROR, message)

    def _fail(self, message: str, claim: Claim) -> NoReturn:
        raise ConnectorError(
            ErrorKind.VALIDATION_ERROR,
            message,
            {"claimId": claim.claim_id, "rail": self.rail.value},
        )

    async def _load_sandbox_claim(self, external_id: str, prefix: str) -> Claim:
        if not external_id.startswith(prefix):
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                "Invalid external ID for sandbox polling",
                {"externalId": external_id},
            )
        claim_id = external_id.removeprefix(prefix)
        claim = await self._claims.get_claim(claim_id)
        if claim is None:
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                f"Claim {claim_id} not found",
                {"externalId": external_id},
            )
        return claim

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        url = self._endpoint(path)
        response = await self._http_client.request(
            method,
            url,
            headers=headers,
            json=json,
            data=data,
        )
        self._ensure_success(method, url, response)
        return response

    def _endpoint(self, path: str) -> str:
        base_url = (self._config.endpoint or "").strip().rstrip("/")
        if not base_url:
            raise ConnectorError(
                ErrorKind.VALIDATION_ERROR,
                f"{self.display_name} endpoint not configured",
                {"rail": self.rail.value},
            )
        return f"{base_url}{path}"

    def _ensure_success(self, method: str, url: str, response: HttpResponse) -> None:
        if response.is_success:
            return
        kind = classify_status(response.status_code, response.body)
        detail = self._detail_from_response(response)
        raise ConnectorError(
            kind,
            f"{method} {url} failed: {response.status_code} {detail}",
            {"statusCode": response.status_code, "rail": self.rail.value},
        )

    def _detail_from_response(self, response: HttpResponse) -> str:
        payload = response.body
        if payload is None:
            text = response.text.strip()
            return text or "<no response body>"
        if isinstance(payload, dict):
            for key in ("detail", "message", "error"):
                detail = payload.get(key)
                if isinstance(detail, str):
                    return detail
        return str(payload)


__all__ = ["BaseRailConnector"]
