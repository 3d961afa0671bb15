"""Deterministic carrier simulator used by sandbox-mode connectors.

The outcome of a simulated adjudication is keyed on the cents of the claim
amount so test claims can be steered to a given result:

* ``.00`` - paid
* ``.13`` - more information requested
* ``.99`` - denied
* anything else - pending
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from claims_pipeline.domain.claims import ClaimStatus
from claims_pipeline.domain.rails import Rail


@dataclass(slots=True, frozen=True)
class SimulatorResult:
    """Simulated carrier adjudication."""

    status: ClaimStatus
    message: str
    details: dict[str, Any] = field(default_factory=dict)


def amount_cents(amount: Decimal) -> str:
    """Return the two cent digits of an amount, e.g. ``"13"`` for 120.13."""

    quantized = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{quantized:.2f}"[-2:]


def simulate_adjudication(rail: Rail, amount: Decimal, claim_id: str) -> SimulatorResult:
    """Return the deterministic carrier response for a claim amount."""

    if rail is Rail.CDANET:
        return _simulate_cdanet(amount, claim_id)
    return _simulate_eclaims(amount, claim_id)


def _simulate_cdanet(amount: Decimal, claim_id: str) -> SimulatorResult:
    now = datetime.now(tz=UTC)
    cents = amount_cents(amount)
    if cents == "00":
        return SimulatorResult(
            status=ClaimStatus.PAID,
            message="Claim approved and paid",
            details={
                "paidAmount": str(amount),
                "paymentDate": now.isoformat(),
                "referenceNumber": f"CDANET-{claim_id}-PAID",
            },
        )
    if cents == "13":
        return SimulatorResult(
            status=ClaimStatus.INFO_REQUESTED,
            message="Additional information required",
            details={
                "requiredInfo": ["Patient medical history", "Treatment plan"],
                "dueDate": (now + timedelta(days=14)).isoformat(),
                "referenceNumber": f"CDANET-{claim_id}-INFO",
            },
        )
    if cents == "99":
        return SimulatorResult(
            status=ClaimStatus.DENIED,
            message="Claim denied - treatment not covered",
            details={
                "denialCode": "NC001",
                "denialReason": "Treatment not covered under current policy",
                "referenceNumber": f"CDANET-{claim_id}-DENIED",
            },
        )
    return SimulatorResult(
        status=ClaimStatus.PENDING,
        message="Claim submitted and under review",
        details={
            "estimatedProcessingDays": 5,
            "referenceNumber": f"CDANET-{claim_id}-PENDING",
        },
    )


def _simulate_eclaims(amount: Decimal, claim_id: str) -> SimulatorResult:
    now = datetime.now(tz=UTC)
    cents = amount_cents(amount)
    if cents == "00":
        return SimulatorResult(
            status=ClaimStatus.PAID,
            message="Electronic claim processed and paid",
            details={
                "paidAmount": str(amount),
                "paymentDate": now.isoformat(),
                "eobNumber": f"EOB-{claim_id}-{int(now.timestamp() * 1000)}",
                "referenceNumber": f"TELUS-{claim_id}-PAID",
            },
        )
    if cents == "13":
        return SimulatorResult(
            status=ClaimStatus.INFO_REQUESTED,
            message="Provider review required",
            details={
                "reviewType": "clinical_review",
                "requiredDocuments": ["Clinical notes", "Lab results"],
                "submissionDeadline": (now + timedelta(days=10)).isoformat(),
                "referenceNumber": f"TELUS-{claim_id}-REVIEW",
            },
        )
    if cents == "99":
        return SimulatorResult(
            status=ClaimStatus.DENIED,
            message="Claim rejected - duplicate submission",
            details={
                "rejectionCode": "DUP002",
                "rejectionReason": "Duplicate claim submission detected",
                "originalClaimRef": f"TELUS-{claim_id[:8]}-ORIG",
                "referenceNumber": f"TELUS-{claim_id}-REJECTED",
            },
        )
    return SimulatorResult(
        status=ClaimStatus.PENDING,
        message="Electronic claim queued for processing",
        details={
            "estimatedProcessingHours": 24,
            "referenceNumber": f"TELUS-{claim_id}-QUEUED",
        },
    )


__all__ = ["SimulatorResult", "amount_cents", "simulate_adjudication"]
