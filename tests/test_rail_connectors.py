from __future__ import annotations

import asyncio
import json
from datetime import date
from decimal import Decimal
from typing import Any

import httpx
import pytest

from claims_pipeline.domain.claims import Claim, ClaimStatus, PatientDetails, ProviderDetails
from claims_pipeline.domain.errors import ConnectorError, ErrorKind, OutboundRequestBlockedError
from claims_pipeline.domain.rails import ConnectorConfig, ConnectorMode, Rail
from claims_pipeline.infrastructure.network import AllowlistPolicy, HttpxClient, NetworkSafetyGate
from claims_pipeline.infrastructure.rails import (
    CdanetItransConnector,
    ConfiguredRailConnectorFactory,
    PortalConnector,
    TelusEClaimsConnector,
)
from claims_pipeline.infrastructure.rails.mappers import (
    map_claim_to_cdanet,
    map_claim_to_eclaims,
    normalize_rail_status,
)
from claims_pipeline.infrastructure.repositories import InMemoryClaimRepository


def _claim(amount: str = "120.50", **overrides: Any) -> Claim:
    values: dict[str, Any] = {
        "claim_id": "c-1",
        "org_id": "org-1",
        "patient_id": "pat-1",
        "provider_id": "prov-1",
        "insurer_id": "ins-1",
        "amount": Decimal(amount),
        "codes": [{"code": "11101", "description": "Scaling", "fee": "60.25"}],
        "patient": PatientDetails(
            name="Jane Doe",
            date_of_birth=date(1985, 4, 2),
            identifiers={"healthCard": "1234-567-890"},
        ),
        "provider": ProviderDetails(name="Dr. Smith", licence_number="LIC-42"),
    }
    values.update(overrides)
    return Claim(**values)


def _gate(handler: Any) -> NetworkSafetyGate:
    return NetworkSafetyGate(
        HttpxClient(transport=httpx.MockTransport(handler)),
        AllowlistPolicy(),
    )


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected outbound request to {request.url}")


def _sandbox_config(rail: Rail) -> ConnectorConfig:
    return ConnectorConfig(org_id="org-1", rail=rail)


def test_telus_sandbox_submit_returns_deterministic_external_id() -> None:
    connector = TelusEClaimsConnector(
        _sandbox_config(Rail.TELUS_ECLAIMS),
        _gate(_unreachable),
        InMemoryClaimRepository(),
    )
    claim = _claim()

    asyncio.run(connector.validate(claim))
    result = asyncio.run(connector.submit_claim(claim))

    assert result.success is True
    assert result.external_id == "TELUS-SBX-c-1"
    assert result.status is ClaimStatus.SUBMITTED


def test_cdanet_sandbox_submit_returns_deterministic_external_id() -> None:
    connector = CdanetItransConnector(
        _sandbox_config(Rail.CDANET),
        _gate(_unreachable),
        InMemoryClaimRepository(),
    )

    result = asyncio.run(connector.submit_claim(_claim()))

    assert result.external_id == "ITRANS-SBX-c-1"
    assert result.raw["ack"] == "AA"


@pytest.mark.parametrize(
    ("connector_type", "rail", "prefix"),
    [
        (TelusEClaimsConnector, Rail.TELUS_ECLAIMS, "TELUS-SBX-"),
        (CdanetItransConnector, Rail.CDANET, "ITRANS-SBX-"),
    ],
)
@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        ("150.00", ClaimStatus.PAID),
        ("150.13", ClaimStatus.INFO_REQUESTED),
        ("150.99", ClaimStatus.DENIED),
        ("150.50", ClaimStatus.PENDING),
    ],
)
def test_sandbox_poll_is_keyed_on_amount_cents(
    connector_type: type[TelusEClaimsConnector] | type[CdanetItransConnector],
    rail: Rail,
    prefix: str,
    amount: str,
    expected: ClaimStatus,
) -> None:
    claims = InMemoryClaimRepository(claims=[_claim(amount)])
    connector = connector_type(_sandbox_config(rail), _gate(_unreachable), claims)

    result = asyncio.run(connector.poll_status(f"{prefix}c-1"))

    assert result.status is expected
    assert "referenceNumber" in result.raw


def test_sandbox_poll_rejects_foreign_external_id() -> None:
    connector = TelusEClaimsConnector(
        _sandbox_config(Rail.TELUS_ECLAIMS),
        _gate(_unreachable),
        InMemoryClaimRepository(claims=[_claim()]),
    )

    with pytest.raises(ConnectorError) as exc_info:
        asyncio.run(connector.poll_status("ITRANS-SBX-c-1"))

    assert exc_info.value.kind is ErrorKind.VALIDATION_ERROR


def test_sandbox_poll_for_unknown_claim_is_validation_error() -> None:
    connector = CdanetItransConnector(
        _sandbox_config(Rail.CDANET),
        _gate(_unreachable),
        InMemoryClaimRepository(),
    )

    with pytest.raises(ConnectorError) as exc_info:
        asyncio.run(connector.poll_status("ITRANS-SBX-missing"))

    assert exc_info.value.kind is ErrorKind.VALIDATION_ERROR
    assert exc_info.value.message == "Claim missing not found"


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"amount": Decimal("0")}, "Valid claim amount is required"),
        ({"insurer_id": ""}, "Insurer ID is required"),
        (
            {"provider": ProviderDetails(name="Dr. Smith")},
            "Provider licence number is required for CDAnet",
        ),
        (
            {"patient": PatientDetails(name="Jane Doe")},
            "Patient date of birth is required for CDAnet",
        ),
        ({"patient": None}, "Patient not found"),
    ],
)
def test_cdanet_validation_rejects_incomplete_claims(
    overrides: dict[str, Any],
    message: str,
) -> None:
    connector = CdanetItransConnector(
        _sandbox_config(Rail.CDANET),
        _gate(_unreachable),
        InMemoryClaimRepository(),
    )

    with pytest.raises(ConnectorError) as exc_info:
        asyncio.run(connector.validate(_claim(**overrides)))

    assert exc_info.value.kind is ErrorKind.VALIDATION_ERROR
    assert exc_info.value.message == message


def test_live_telus_requires_credentials() -> None:
    connector = TelusEClaimsConnector(
        ConnectorConfig(
            org_id="org-1",
            rail=Rail.TELUS_ECLAIMS,
            mode=ConnectorMode.LIVE,
            endpoint="https://sandbox.eclaims.example/v1",
            settings={"client_id": "cid"},
        ),
        _gate(_unreachable),
        InMemoryClaimRepository(),
    )

    with pytest.raises(ConnectorError) as exc_info:
        asyncio.run(connector.validate(_claim()))

    assert exc_info.value.message == "eClaims client secret not configured"


def _live_telus_config(endpoint: str = "https://sandbox.eclaims.example/v1") -> ConnectorConfig:
    return ConnectorConfig(
        org_id="org-1",
        rail=Rail.TELUS_ECLAIMS,
        mode=ConnectorMode.LIVE,
        endpoint=endpoint,
        settings={"client_id": "cid", "client_secret": "secret"},
    )


def test_live_telus_submits_and_polls_with_cached_token() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/v1/oauth/token":
            return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})
        if request.url.path == "/v1/claims":
            return httpx.Response(
                201,
                json={"success": True, "claimId": "EC-123", "message": "Accepted"},
            )
        if request.url.path == "/v1/claims/EC-123/status":
            return httpx.Response(200, json={"claimStatus": "approved"})
        return httpx.Response(404)

    connector = TelusEClaimsConnector(
        _live_telus_config(),
        _gate(handler),
        InMemoryClaimRepository(),
    )

    submitted = asyncio.run(connector.submit_claim(_claim()))
    polled = asyncio.run(connector.poll_status("EC-123"))

    assert submitted.external_id == "EC-123"
    assert submitted.status is ClaimStatus.SUBMITTED
    assert polled.status is ClaimStatus.PAID

    token_requests = [item for item in requests if item.url.path == "/v1/oauth/token"]
    assert len(token_requests) == 1
    assert b"grant_type=client_credentials" in token_requests[0].content

    submission = next(item for item in requests if item.url.path == "/v1/claims")
    assert submission.headers["Authorization"] == "Bearer tok-1"
    assert submission.headers["X-Sandbox-Mode"] == "true"
    payload = json.loads(submission.content.decode())
    assert payload["submissionId"] == "c-1"
    assert payload["patientInfo"]["healthCardNumber"] == "1234-567-890"


def test_live_telus_refreshes_token_one_minute_before_expiry() -> None:
    token_requests: list[httpx.Request] = []
    now = [0.0]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth/token":
            token_requests.append(request)
            return httpx.Response(
                200,
                json={"access_token": f"tok-{len(token_requests)}", "expires_in": 120},
            )
        return httpx.Response(200, json={"claimStatus": "processing"})

    connector = TelusEClaimsConnector(
        _live_telus_config(),
        _gate(handler),
        InMemoryClaimRepository(),
        clock=lambda: now[0],
    )

    asyncio.run(connector.poll_status("EC-1"))
    now[0] = 59.0
    asyncio.run(connector.poll_status("EC-1"))
    now[0] = 61.0
    result = asyncio.run(connector.poll_status("EC-1"))

    assert len(token_requests) == 2
    assert result.status is ClaimStatus.PENDING


def test_live_telus_classifies_rate_limit() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth/token":
            return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})
        return httpx.Response(429, json={"message": "Too many requests"})

    connector = TelusEClaimsConnector(
        _live_telus_config(),
        _gate(handler),
        InMemoryClaimRepository(),
    )

    with pytest.raises(ConnectorError) as exc_info:
        asyncio.run(connector.submit_claim(_claim()))

    assert exc_info.value.kind is ErrorKind.RATE_LIMIT
    assert "Too many requests" in exc_info.value.message


def test_live_telus_against_production_host_is_blocked_in_sandbox() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={})

    connector = TelusEClaimsConnector(
        _live_telus_config("https://api.telus.com/eclaims"),
        _gate(handler),
        InMemoryClaimRepository(),
    )

    with pytest.raises(OutboundRequestBlockedError):
        asyncio.run(connector.submit_claim(_claim()))

    assert requests == []


def test_live_cdanet_posts_segments_with_itrans_headers() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"transactionId": "TX-1", "status": "accepted"})

    connector = CdanetItransConnector(
        ConnectorConfig(
            org_id="org-1",
            rail=Rail.CDANET,
            mode=ConnectorMode.LIVE,
            endpoint="https://sandbox.itrans.example",
            settings={
                "office_number": "OFF-1",
                "provider_number": "P-77",
                "cert_path": "/etc/itrans.pem",
            },
        ),
        _gate(handler),
        InMemoryClaimRepository(),
    )

    asyncio.run(connector.validate(_claim()))
    result = asyncio.run(connector.submit_claim(_claim()))

    assert result.external_id == "TX-1"
    assert result.status is ClaimStatus.SUBMITTED
    request = requests[0]
    assert request.url.path == "/claims/submit"
    assert request.headers["Provider-ID"] == "P-77"
    assert request.headers["Software-ID"] == "CLAIMSPIPE001"
    body = json.loads(request.content.decode())
    assert body["officeNumber"] == "OFF-1"
    assert body["segments"][0].startswith("A01LIC-42")


def test_portal_requires_a_service_line() -> None:
    connector = PortalConnector(
        _sandbox_config(Rail.PORTAL),
        _gate(_unreachable),
        InMemoryClaimRepository(),
    )

    with pytest.raises(ConnectorError) as exc_info:
        asyncio.run(connector.validate(_claim(codes=[])))

    assert exc_info.value.message == "At least one service is required"


def test_portal_submit_and_poll_without_network() -> None:
    connector = PortalConnector(
        _sandbox_config(Rail.PORTAL),
        _gate(_unreachable),
        InMemoryClaimRepository(),
    )

    submitted = asyncio.run(connector.submit_claim(_claim()))
    polled = asyncio.run(connector.poll_status(submitted.external_id or ""))

    assert submitted.external_id is not None
    assert submitted.external_id.startswith("PORTAL-c-1-")
    assert submitted.external_id.rsplit("-", 1)[1].isdigit()
    assert polled.status is ClaimStatus.PENDING


def test_factory_returns_connector_for_enabled_rail() -> None:
    repository = InMemoryClaimRepository(connector_configs=[_sandbox_config(Rail.CDANET)])
    factory = ConfiguredRailConnectorFactory(repository, _gate(_unreachable), repository)

    connector = asyncio.run(factory.get_connector(Rail.CDANET, "org-1"))

    assert isinstance(connector, CdanetItransConnector)


@pytest.mark.parametrize(
    "configs",
    [
        [],
        [ConnectorConfig(org_id="org-1", rail=Rail.CDANET, enabled=False)],
        [ConnectorConfig(org_id="org-2", rail=Rail.CDANET)],
    ],
)
def test_factory_rejects_missing_or_disabled_rail(configs: list[ConnectorConfig]) -> None:
    repository = InMemoryClaimRepository(connector_configs=configs)
    factory = ConfiguredRailConnectorFactory(repository, _gate(_unreachable), repository)

    with pytest.raises(ConnectorError) as exc_info:
        asyncio.run(factory.get_connector(Rail.CDANET, "org-1"))

    assert exc_info.value.kind is ErrorKind.VALIDATION_ERROR
    assert exc_info.value.message == "cdanet connector not enabled for organization"


def test_factory_reuses_connector_and_its_token_across_jobs() -> None:
    token_requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth/token":
            token_requests.append(request)
            return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})
        return httpx.Response(201, json={"success": True, "claimId": "EC-1"})

    repository = InMemoryClaimRepository(connector_configs=[_live_telus_config()])
    factory = ConfiguredRailConnectorFactory(repository, _gate(handler), repository)

    async def scenario() -> list[object]:
        connectors: list[object] = []
        for _ in range(3):
            connector = await factory.get_connector(Rail.TELUS_ECLAIMS, "org-1")
            await connector.submit_claim(_claim())
            connectors.append(connector)
        return connectors

    connectors = asyncio.run(scenario())

    assert connectors[0] is connectors[1] is connectors[2]
    assert len(token_requests) == 1


def test_factory_replaces_connector_when_configuration_changes() -> None:
    repository = InMemoryClaimRepository(connector_configs=[_live_telus_config()])
    factory = ConfiguredRailConnectorFactory(repository, _gate(_unreachable), repository)
    rotated = ConnectorConfig(
        org_id="org-1",
        rail=Rail.TELUS_ECLAIMS,
        mode=ConnectorMode.LIVE,
        endpoint="https://sandbox.eclaims.example/v1",
        settings={"client_id": "cid", "client_secret": "rotated"},
    )

    async def scenario() -> tuple[object, object, object]:
        first = await factory.get_connector(Rail.TELUS_ECLAIMS, "org-1")
        again = await factory.get_connector(Rail.TELUS_ECLAIMS, "org-1")
        await repository.add_connector_config(rotated)
        replaced = await factory.get_connector(Rail.TELUS_ECLAIMS, "org-1")
        return first, again, replaced

    first, again, replaced = asyncio.run(scenario())

    assert first is again
    assert replaced is not first
    assert isinstance(replaced, TelusEClaimsConnector)
    assert replaced.config.setting("client_secret") == "rotated"


def test_eclaims_payload_defaults_to_general_service_code() -> None:
    payload = map_claim_to_eclaims(_claim(codes=[]), today=date(2026, 1, 15))

    assert payload["serviceInfo"]["serviceDate"] == "2026-01-15"
    assert payload["serviceInfo"]["serviceCodes"] == [
        {
            "code": "GENERAL",
            "description": "General Medical Service",
            "units": 1,
            "fee": 120.5,
        }
    ]
    assert payload["patientInfo"]["firstName"] == "Jane"
    assert payload["patientInfo"]["dateOfBirth"] == "1985-04-02"


def test_cdanet_segments_cap_service_lines() -> None:
    codes = [{"code": f"0{index}", "description": "Exam"} for index in range(10)]

    segments = map_claim_to_cdanet(_claim(codes=codes), today=date(2026, 1, 15))

    assert segments[0] == "A01LIC-4220260115c-1"
    assert segments[2].startswith("A03")
    service_codes = {f"A{index:02d}" for index in range(8, 16)}
    service_segments = [item for item in segments if item[:3] in service_codes]
    assert len(service_segments) == 8


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("processing", ClaimStatus.PENDING),
        ("queued", ClaimStatus.PENDING),
        ("approved", ClaimStatus.PAID),
        ("rejected", ClaimStatus.DENIED),
        ("info_requested", ClaimStatus.INFO_REQUESTED),
        ("infoRequested", ClaimStatus.INFO_REQUESTED),
        ("review", ClaimStatus.INFO_REQUESTED),
        ("mystery", None),
        (None, None),
    ],
)
def test_rail_status_normalization(value: object, expected: ClaimStatus | None) -> None:
    assert normalize_rail_status(value) is expected
