"""Domain exceptions and the connector error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Fixed taxonomy of connector failure kinds."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    PAYER_REJECT = "PAYER_REJECT"
    DUPLICATE = "DUPLICATE"
    UNKNOWN = "UNKNOWN"


RETRIABLE_ERROR_KINDS = frozenset(
    {
        ErrorKind.TRANSPORT_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.RATE_LIMIT,
    }
)


@dataclass(slots=True, frozen=True)
class ClassifiedError:
    """Interpreted connector failure recorded on a job."""

    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def retriable(self) -> bool:
        """Whether repeating the operation can succeed."""

        return self.kind in RETRIABLE_ERROR_KINDS


class ConnectorError(Exception):
    """Raised by rail connectors and the outbound HTTP stack."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = dict(details or {})

    @property
    def retriable(self) -> bool:
        return self.kind in RETRIABLE_ERROR_KINDS

    def to_classified(self) -> ClassifiedError:
        """Return the immutable record stored as a job's last error."""

        return ClassifiedError(kind=self.kind, message=self.message, details=self.details)


class OutboundRequestBlockedError(ConnectorError):
    """Raised when the network safety gate refuses an outbound call."""

    def __init__(self, hostname: str, reason: str) -> None:
        super().__init__(
            ErrorKind.AUTH_ERROR,
            f"SANDBOX_BLOCKED: Domain {hostname} is blocked in sandbox mode",
            {"hostname": hostname, "reason": reason},
        )
        self.hostname = hostname
        self.reason = reason


class UnsafeNetworkPostureError(RuntimeError):
    """Raised at startup when the outbound network configuration is contradictory."""


class JobError(Exception):
    """Base class for job scheduling errors."""


class JobNotFoundError(JobError):
    """Raised when a job cannot be found."""


class JobValidationError(JobError):
    """Raised when an enqueue request is invalid."""


class JobStateError(JobError):
    """Raised when a job status transition is not allowed."""


__all__ = [
    "ClassifiedError",
    "ConnectorError",
    "ErrorKind",
    "JobError",
    "JobNotFoundError",
    "JobStateError",
    "JobValidationError",
    "OutboundRequestBlockedError",
    "RETRIABLE_ERROR_KINDS",
    "UnsafeNetworkPostureError",
]
