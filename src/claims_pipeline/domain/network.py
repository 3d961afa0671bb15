"""Outbound network models shared by the HTTP port and the safety gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EdiMode(StrEnum):
    """Process-wide outbound posture."""

    SANDBOX = "sandbox"
    LIVE = "live"


DEFAULT_ALLOWED_PREFIXES: tuple[str, ...] = (
    "sandbox.",
    "test.",
    "mock.",
    "dev.",
    "staging.",
)


@dataclass(slots=True, frozen=True)
class AllowlistDecision:
    """Verdict for one attempted outbound call."""

    hostname: str
    allowed: bool
    reason: str


@dataclass(slots=True, frozen=True)
class HttpResponse:
    """Transport-neutral response handed back to connectors."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    text: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


__all__ = [
    "AllowlistDecision",
    "DEFAULT_ALLOWED_PREFIXES",
    "EdiMode",
    "HttpResponse",
]
