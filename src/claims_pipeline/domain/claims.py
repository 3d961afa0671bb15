"""Claim representation handed to rail connectors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Any


class ClaimStatus(StrEnum):
    """Externally visible claim states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING = "pending"
    INFO_REQUESTED = "infoRequested"
    PAID = "paid"
    DENIED = "denied"


class ClaimType(StrEnum):
    """Claim or pre-authorization."""

    CLAIM = "claim"
    PREAUTH = "preauth"


@dataclass(slots=True, frozen=True)
class PatientDetails:
    """Patient fields required by EDI rails."""

    name: str
    date_of_birth: date | None = None
    identifiers: dict[str, Any] = field(default_factory=dict)

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        return " ".join(self.name.split()[1:])


@dataclass(slots=True, frozen=True)
class ProviderDetails:
    """Provider fields required by EDI rails."""

    name: str
    licence_number: str | None = None
    identifiers: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Claim:
    """Generic claim as loaded from the persistence collaborator."""

    claim_id: str
    org_id: str
    patient_id: str
    provider_id: str
    insurer_id: str
    amount: Decimal
    currency: str = "CAD"
    status: ClaimStatus = ClaimStatus.DRAFT
    claim_type: ClaimType = ClaimType.CLAIM
    codes: list[dict[str, Any]] = field(default_factory=list)
    notes: str | None = None
    external_id: str | None = None
    reference_number: str | None = None
    patient: PatientDetails | None = None
    provider: ProviderDetails | None = None


__all__ = [
    "Claim",
    "ClaimStatus",
    "ClaimType",
    "PatientDetails",
    "ProviderDetails",
]
