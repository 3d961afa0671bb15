"""Pure classification of connector outcomes and retry backoff."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

from claims_pipeline.domain.errors import (
    RETRIABLE_ERROR_KINDS,
    ClassifiedError,
    ConnectorError,
    ErrorKind,
)

_DEFAULT_BASE_DELAY_MS = 2000
_DEFAULT_MAX_DELAY_MS = 300_000
_DEFAULT_JITTER_RATIO = 0.1


def classify_status(status_code: int, body: Any = None) -> ErrorKind:
    """Map an HTTP status code to an error kind.

    The response body is accepted for parity with rail responses but does not
    influence the result.
    """

    _ = body
    if 400 <= status_code < 500:
        if status_code == 400:
            return ErrorKind.VALIDATION_ERROR
        if status_code in (401, 403):
            return ErrorKind.AUTH_ERROR
        if status_code == 409:
            return ErrorKind.DUPLICATE
        if status_code == 429:
            return ErrorKind.RATE_LIMIT
        return ErrorKind.PAYER_REJECT
    if status_code >= 500:
        return ErrorKind.TRANSPORT_ERROR
    return ErrorKind.UNKNOWN


def is_retriable(kind: ErrorKind) -> bool:
    """Return True only for transient transport-level failures."""

    return kind in RETRIABLE_ERROR_KINDS


def classify_exception(exc: BaseException) -> ClassifiedError:
    """Interpret any failure raised while executing a job."""

    if isinstance(exc, ConnectorError):
        return exc.to_classified()
    message = str(exc).strip() or type(exc).__name__
    return ClassifiedError(
        kind=ErrorKind.UNKNOWN,
        message=message,
        details={"exception": type(exc).__name__},
    )


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Exponential backoff with symmetric jitter and an upper cap."""

    base_delay_ms: int = _DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = _DEFAULT_MAX_DELAY_MS
    jitter_ratio: float = _DEFAULT_JITTER_RATIO

    def delay_ms(self, attempt: int, rng: random.Random | None = None) -> int:
        """Return the delay before the next attempt, in milliseconds."""

        delay = float(self.base_delay_ms * (2 ** max(attempt, 0)))
        ratio = max(min(self.jitter_ratio, 1.0), 0.0)
        if ratio > 0:
            window = delay * ratio
            uniform = random.uniform if rng is None else rng.uniform
            delay += uniform(-window, window)
        # Cap after jitter so saturated attempts always wait exactly the cap.
        return int(max(min(delay, float(self.max_delay_ms)), 0.0))


DEFAULT_RETRY_POLICY = RetryPolicy()


def backoff_delay(attempt: int) -> int:
    """Return `2000 * 2**attempt` ms with ±10% jitter, capped at five minutes."""

    return DEFAULT_RETRY_POLICY.delay_ms(attempt)


__all__ = [
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    "backoff_delay",
    "classify_exception",
    "classify_status",
    "is_retriable",
]
