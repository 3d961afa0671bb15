"""Claim-to-rail payload mapping and rail response parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from claims_pipeline.domain.claims import Claim, ClaimStatus

_SOFTWARE_ID = "CLAIMSPIPE001"
_SOFTWARE_VERSION = "1.0.0"
_MAX_CDANET_SERVICE_LINES = 8

_STATUS_ALIASES: dict[str, ClaimStatus] = {
    "accepted": ClaimStatus.SUBMITTED,
    "submitted": ClaimStatus.SUBMITTED,
    "processing": ClaimStatus.PENDING,
    "queued": ClaimStatus.PENDING,
    "pending": ClaimStatus.PENDING,
    "approved": ClaimStatus.PAID,
    "paid": ClaimStatus.PAID,
    "rejected": ClaimStatus.DENIED,
    "denied": ClaimStatus.DENIED,
    "info_requested": ClaimStatus.INFO_REQUESTED,
    "inforequested": ClaimStatus.INFO_REQUESTED,
    "review": ClaimStatus.INFO_REQUESTED,
}


@dataclass(slots=True, frozen=True)
class ParsedRailResponse:
    """Fields extracted from a live rail response body."""

    success: bool
    external_id: str | None = None
    status: ClaimStatus | None = None
    message: str | None = None
    errors: list[str] = field(default_factory=list)


def normalize_rail_status(value: object) -> ClaimStatus | None:
    """Map a rail-specific status literal onto a claim status."""

    if not isinstance(value, str):
        return None
    return _STATUS_ALIASES.get(value.strip().lower())


def _format_compact_date(value: date | datetime) -> str:
    return value.strftime("%Y%m%d")


def _service_lines(claim: Claim) -> list[dict[str, Any]]:
    lines: list[dict[str, Any]] = []
    count = len(claim.codes)
    for entry in claim.codes:
        code = entry.get("code")
        if not code:
            continue
        fee = entry.get("fee")
        lines.append(
            {
                "code": str(code),
                "description": entry.get("description"),
                "units": int(entry.get("units") or 1),
                "fee": float(fee) if fee is not None else float(claim.amount / count),
            }
        )
    if not lines:
        lines.append(
            {
                "code": "GENERAL",
                "description": "General Medical Service",
                "units": 1,
                "fee": float(claim.amount),
            }
        )
    return lines


def map_claim_to_cdanet(claim: Claim, *, today: date | None = None) -> list[str]:
    """Render a claim as CDAnet transaction segments."""

    patient = claim.patient
    provider = claim.provider
    if patient is None or provider is None:
        raise ValueError("CDAnet mapping requires patient and provider details.")

    transaction_date = _format_compact_date(today or datetime.now(tz=UTC).date())
    licence = provider.licence_number or ""
    segments = [
        f"A01{licence}{transaction_date}{claim.claim_id}",
        f"A02{provider.name}{licence}",
        f"A03{_SOFTWARE_ID}{_SOFTWARE_VERSION}",
    ]

    dob = "" if patient.date_of_birth is None else _format_compact_date(patient.date_of_birth)
    segments.append(f"A04{patient.first_name} {patient.last_name}{dob}U")

    identifiers = patient.identifiers
    if identifiers.get("address"):
        segments.append(
            "A05"
            f"{identifiers.get('address', '')}"
            f"{identifiers.get('city', '')}"
            f"{identifiers.get('province', '')}"
            f"{identifiers.get('postalCode', '')}"
        )
    segments.append(
        f"A06{claim.insurer_id}"
        f"{identifiers.get('policyNumber', '')}"
        f"{identifiers.get('certificateNumber', '')}"
    )

    service_count = max(len(claim.codes), 1)
    segments.append(f"A07{transaction_date}{claim.amount:.2f}{service_count}")

    per_line = (claim.amount / service_count).quantize(Decimal("0.01"))
    for index, entry in enumerate(claim.codes[:_MAX_CDANET_SERVICE_LINES]):
        segment_code = f"A{8 + index:02d}"
        segments.append(
            f"{segment_code}{entry.get('code', '')}{entry.get('description', '') or ''}{per_line}"
        )
    return segments


def map_claim_to_eclaims(claim: Claim, *, today: date | None = None) -> dict[str, Any]:
    """Render a claim as a TELUS eClaims JSON submission."""

    patient = claim.patient
    provider = claim.provider
    if patient is None or provider is None:
        raise ValueError("eClaims mapping requires patient and provider details.")

    identifiers = patient.identifiers
    service_date = today or datetime.now(tz=UTC).date()
    payload: dict[str, Any] = {
        "submissionId": claim.claim_id,
        "providerInfo": {
            "providerId": claim.provider_id,
            "licenseNumber": provider.licence_number,
            "name": provider.name,
        },
        "patientInfo": {
            "healthCardNumber": identifiers.get("healthCard")
            or identifiers.get("ohip")
            or "UNKNOWN",
            "firstName": patient.first_name,
            "lastName": patient.last_name,
            "dateOfBirth": (
                None if patient.date_of_birth is None else patient.date_of_birth.isoformat()
            ),
            "gender": identifiers.get("gender", "U"),
        },
        "serviceInfo": {
            "serviceDate": service_date.isoformat(),
            "serviceCodes": _service_lines(claim),
        },
        "claimInfo": {
            "totalAmount": float(claim.amount),
            "currency": claim.currency,
        },
    }
    if claim.reference_number:
        payload["claimInfo"]["referenceNumber"] = claim.reference_number
    if claim.notes:
        payload["claimInfo"]["notes"] = claim.notes
    return payload


def parse_eclaims_response(body: object) -> ParsedRailResponse:
    """Extract outcome fields from an eClaims response body."""

    if not isinstance(body, dict) or not body:
        return ParsedRailResponse(success=False, message="Empty response from eClaims")

    if body.get("status") == "submitted" or body.get("success") is True:
        external_id = body.get("claimId") or body.get("submissionId") or body.get("id")
        return ParsedRailResponse(
            success=True,
            external_id=None if external_id is None else str(external_id),
            status=ClaimStatus.SUBMITTED,
            message=body.get("message") or "Claim submitted successfully",
        )

    if body.get("errors") or body.get("error"):
        raw_errors = body.get("errors")
        if not isinstance(raw_errors, list):
            raw_errors = [body.get("error") or body.get("message")]
        errors = [
            item if isinstance(item, str) else str(item.get("message", "Unknown error"))
            for item in raw_errors
            if item
        ]
        return ParsedRailResponse(
            success=False,
            message=body.get("message") or (errors[0] if errors else None),
            errors=errors,
        )

    if body.get("claimStatus"):
        return ParsedRailResponse(
            success=True,
            status=normalize_rail_status(body.get("claimStatus")),
            message=body.get("statusMessage") or body.get("message"),
        )

    return ParsedRailResponse(success=False, message="Unable to parse eClaims response")


def parse_cdanet_response(body: object, text: str = "") -> ParsedRailResponse:
    """Extract outcome fields from a CDAnet acknowledgment or JSON body."""

    if isinstance(body, dict):
        external_id = body.get("transactionId") or body.get("submissionId") or body.get(
            "externalId"
        )
        status = normalize_rail_status(body.get("status"))
        return ParsedRailResponse(
            success=status is not None,
            external_id=None if external_id is None else str(external_id),
            status=status,
            message=body.get("message"),
            errors=[str(item) for item in body.get("errors") or []],
        )

    lines = text.splitlines()
    acknowledgment = next((line for line in lines if line.startswith("ACK")), None)
    if acknowledgment is None:
        return ParsedRailResponse(success=False, message="Unable to parse CDAnet response")

    errors = [line[3:] for line in lines if line.startswith("ERR")]
    ack_code = acknowledgment[3:5]
    if ack_code == "AA":
        external_id = next(
            (line[3:].strip() for line in lines if line.startswith("TXN")),
            None,
        )
        return ParsedRailResponse(
            success=True,
            external_id=external_id or None,
            status=ClaimStatus.SUBMITTED,
            message="Application Accept",
        )
    if ack_code == "AE":
        return ParsedRailResponse(success=False, message="Application Error", errors=errors)
    if ack_code == "AR":
        return ParsedRailResponse(success=False, message="Application Reject", errors=errors)
    return ParsedRailResponse(success=False, message=f"Unknown response code '{ack_code}'")


__all__ = [
    "ParsedRailResponse",
    "map_claim_to_cdanet",
    "map_claim_to_eclaims",
    "normalize_rail_status",
    "parse_cdanet_response",
    "parse_eclaims_response",
]
