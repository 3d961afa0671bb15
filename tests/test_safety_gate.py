from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from claims_pipeline.domain.errors import (
    ErrorKind,
    OutboundRequestBlockedError,
    UnsafeNetworkPostureError,
)
from claims_pipeline.domain.network import EdiMode
from claims_pipeline.infrastructure.network import AllowlistPolicy, HttpxClient, NetworkSafetyGate


@pytest.mark.parametrize(
    "hostname",
    [
        "localhost",
        "127.0.0.1",
        "sandbox.itrans.ca",
        "test.payer.example",
        "api.sandbox.telus.com",
        "mock.insurer.local",
        "dev.claims.internal",
        "staging.eclaims.ca",
        "LOCALHOST",
        "sandbox.itrans.ca:8443",
    ],
)
def test_sandbox_policy_allows_loopback_and_allowlisted_hosts(hostname: str) -> None:
    decision = AllowlistPolicy().decide(hostname)

    assert decision.allowed is True
    assert decision.hostname == hostname


@pytest.mark.parametrize(
    "hostname",
    ["api.telus.com", "provider.manulife.ca", "claims.greenshield.ca", "www.sunlife.ca"],
)
def test_sandbox_policy_blocks_production_insurers_with_explicit_reason(hostname: str) -> None:
    decision = AllowlistPolicy().decide(hostname)

    assert decision.allowed is False
    assert decision.reason.startswith("Production domain explicitly blocked")


def test_sandbox_policy_blocks_unknown_hosts() -> None:
    decision = AllowlistPolicy().decide("example.org")

    assert decision.allowed is False
    assert decision.reason == "Domain not in allowed list (strict mode)"


def test_empty_hostname_is_blocked() -> None:
    decision = AllowlistPolicy().decide("  ")

    assert decision.allowed is False
    assert decision.reason == "Hostname is empty"


def test_live_mode_without_production_permission_still_blocks() -> None:
    policy = AllowlistPolicy(mode=EdiMode.LIVE, allow_production_domains=False)

    assert policy.decide("api.telus.com").allowed is False
    assert policy.decide("sandbox.itrans.ca").allowed is True


def test_live_mode_with_production_permission_allows_any_host() -> None:
    policy = AllowlistPolicy(mode=EdiMode.LIVE, allow_production_domains=True)

    assert policy.decide("api.telus.com").allowed is True
    assert policy.decide("example.org").allowed is True


def test_custom_allowlist_replaces_defaults() -> None:
    policy = AllowlistPolicy(allowed_prefixes=["qa."])

    assert policy.decide("qa.payer.example").allowed is True
    assert policy.decide("sandbox.itrans.ca").allowed is False


def test_sandbox_with_production_domains_aborts_startup() -> None:
    policy = AllowlistPolicy(mode=EdiMode.SANDBOX, allow_production_domains=True)

    with pytest.raises(UnsafeNetworkPostureError):
        policy.verify_startup_posture()


def test_sandbox_with_empty_allowlist_warns(caplog: pytest.LogCaptureFixture) -> None:
    policy = AllowlistPolicy(allowed_prefixes=[])

    with caplog.at_level(logging.WARNING):
        policy.verify_startup_posture()

    assert "empty outbound allowlist" in caplog.text


def test_live_without_production_permission_warns(caplog: pytest.LogCaptureFixture) -> None:
    policy = AllowlistPolicy(mode=EdiMode.LIVE)

    with caplog.at_level(logging.WARNING):
        policy.verify_startup_posture()

    assert "production domains are not permitted" in caplog.text


def test_gate_refuses_blocked_host_without_touching_network() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=200)

    gate = NetworkSafetyGate(
        HttpxClient(transport=httpx.MockTransport(handler)),
        AllowlistPolicy(),
    )

    with pytest.raises(OutboundRequestBlockedError) as exc_info:
        asyncio.run(gate.request("POST", "https://api.telus.com/claims", json={"id": "c-1"}))

    assert requests == []
    assert exc_info.value.kind is ErrorKind.AUTH_ERROR
    assert exc_info.value.retriable is False
    assert exc_info.value.details["hostname"] == "api.telus.com"


def test_gate_blocks_urls_without_hostname() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=200)

    gate = NetworkSafetyGate(
        HttpxClient(transport=httpx.MockTransport(handler)),
        AllowlistPolicy(),
    )

    with pytest.raises(OutboundRequestBlockedError):
        asyncio.run(gate.request("GET", "/claims/relative"))

    assert requests == []


def test_gate_forwards_allowed_request_with_sandbox_headers() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=201, json={"status": "submitted"})

    gate = NetworkSafetyGate(
        HttpxClient(transport=httpx.MockTransport(handler)),
        AllowlistPolicy(),
    )

    response = asyncio.run(
        gate.request(
            "POST",
            "https://sandbox.eclaims.example/claims",
            headers={"Authorization": "Bearer token"},
            json={"id": "c-1"},
        )
    )

    assert response.status_code == 201
    assert response.body == {"status": "submitted"}
    assert len(requests) == 1
    assert requests[0].headers["X-Sandbox-Mode"] == "true"
    assert "X-Sandbox-Timestamp" in requests[0].headers
    assert requests[0].headers["Authorization"] == "Bearer token"


def test_gate_does_not_tag_live_requests() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=200, json={})

    gate = NetworkSafetyGate(
        HttpxClient(transport=httpx.MockTransport(handler)),
        AllowlistPolicy(mode=EdiMode.LIVE, allow_production_domains=True),
    )

    asyncio.run(gate.request("GET", "https://api.telus.com/claims/1/status"))

    assert len(requests) == 1
    assert "X-Sandbox-Mode" not in requests[0].headers


def test_gate_logs_every_decision(caplog: pytest.LogCaptureFixture) -> None:
    gate = NetworkSafetyGate(
        HttpxClient(transport=httpx.MockTransport(lambda _: httpx.Response(200))),
        AllowlistPolicy(),
    )

    with caplog.at_level(logging.INFO, logger="claims_pipeline.infrastructure.network"):
        asyncio.run(gate.request("GET", "https://sandbox.itrans.ca/ping"))
        with pytest.raises(OutboundRequestBlockedError):
            asyncio.run(gate.request("GET", "https://example.org/ping"))

    decisions = [
        (record.outbound_host, record.outbound_allowed)
        for record in caplog.records
        if hasattr(record, "outbound_host")
    ]
    assert decisions == [("sandbox.itrans.ca", True), ("example.org", False)]


def test_gate_logs_allowlist_checks(caplog: pytest.LogCaptureFixture) -> None:
    gate = NetworkSafetyGate(
        HttpxClient(transport=httpx.MockTransport(lambda _: httpx.Response(200))),
        AllowlistPolicy(),
    )

    with caplog.at_level(logging.INFO, logger="claims_pipeline.infrastructure.network"):
        allowed = gate.decide("mock.insurer.local")
        blocked = gate.decide("api.telus.com")

    assert allowed.allowed is True
    assert blocked.allowed is False
    decisions = [
        (record.outbound_host, record.outbound_allowed, record.outbound_reason)
        for record in caplog.records
        if hasattr(record, "outbound_host")
    ]
    assert decisions == [
        ("mock.insurer.local", True, allowed.reason),
        ("api.telus.com", False, blocked.reason),
    ]
