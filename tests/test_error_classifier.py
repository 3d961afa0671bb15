from __future__ import annotations

import random

import pytest

from claims_pipeline.domain.error_classifier import (
    RetryPolicy,
    backoff_delay,
    classify_exception,
    classify_status,
    is_retriable,
)
from claims_pipeline.domain.errors import (
    ConnectorError,
    ErrorKind,
    OutboundRequestBlockedError,
)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (400, ErrorKind.VALIDATION_ERROR),
        (401, ErrorKind.AUTH_ERROR),
        (403, ErrorKind.AUTH_ERROR),
        (404, ErrorKind.PAYER_REJECT),
        (409, ErrorKind.DUPLICATE),
        (422, ErrorKind.PAYER_REJECT),
        (429, ErrorKind.RATE_LIMIT),
        (500, ErrorKind.TRANSPORT_ERROR),
        (503, ErrorKind.TRANSPORT_ERROR),
        (302, ErrorKind.UNKNOWN),
        (200, ErrorKind.UNKNOWN),
    ],
)
def test_classify_status_maps_http_codes(status_code: int, expected: ErrorKind) -> None:
    assert classify_status(status_code) is expected


def test_classify_status_ignores_body() -> None:
    assert classify_status(400, {"error": "rate limited"}) is ErrorKind.VALIDATION_ERROR


def test_only_transport_level_kinds_are_retriable() -> None:
    retriable = {kind for kind in ErrorKind if is_retriable(kind)}

    assert retriable == {ErrorKind.TRANSPORT_ERROR, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMIT}


def test_classify_exception_keeps_connector_error_fields() -> None:
    error = classify_exception(
        ConnectorError(ErrorKind.RATE_LIMIT, "slow down", {"retryAfter": 3})
    )

    assert error.kind is ErrorKind.RATE_LIMIT
    assert error.message == "slow down"
    assert error.details == {"retryAfter": 3}
    assert error.retriable is True


def test_classify_exception_maps_unexpected_errors_to_unknown() -> None:
    error = classify_exception(KeyError("patient"))

    assert error.kind is ErrorKind.UNKNOWN
    assert "patient" in error.message
    assert error.details == {"exception": "KeyError"}
    assert error.retriable is False


def test_blocked_outbound_request_is_terminal_auth_error() -> None:
    error = classify_exception(OutboundRequestBlockedError("api.telus.com", "blocked"))

    assert error.kind is ErrorKind.AUTH_ERROR
    assert error.message == "SANDBOX_BLOCKED: Domain api.telus.com is blocked in sandbox mode"
    assert error.retriable is False


@pytest.mark.parametrize("attempt", [0, 1, 2, 3, 4, 5, 6, 7])
def test_backoff_delay_stays_within_jitter_window(attempt: int) -> None:
    nominal = min(2000 * 2**attempt, 300_000)

    for _ in range(50):
        delay = backoff_delay(attempt)
        assert nominal * 0.9 - 1 <= delay <= min(nominal * 1.1, 300_000)


def test_backoff_delay_for_first_retry() -> None:
    for _ in range(50):
        assert 3600 <= backoff_delay(1) <= 4400


def test_backoff_delay_saturates_at_cap() -> None:
    assert backoff_delay(10) == 300_000
    assert backoff_delay(20) == 300_000


def test_retry_policy_without_jitter_is_deterministic() -> None:
    policy = RetryPolicy(base_delay_ms=100, max_delay_ms=1000, jitter_ratio=0.0)

    assert [policy.delay_ms(attempt) for attempt in range(6)] == [100, 200, 400, 800, 1000, 1000]


def test_retry_policy_uses_supplied_random_source() -> None:
    policy = RetryPolicy()

    first = policy.delay_ms(2, rng=random.Random(7))
    second = policy.delay_ms(2, rng=random.Random(7))

    assert first == second
    assert 7200 <= first <= 8800
