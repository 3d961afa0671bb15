"""Outbound HTTP adapters."""

from claims_pipeline.infrastructure.network.httpx_client import HttpxClient
from claims_pipeline.infrastructure.network.safety_gate import (
    BLOCKED_PRODUCTION_DOMAINS,
    AllowlistPolicy,
    NetworkSafetyGate,
)

__all__ = [
    "AllowlistPolicy",
    "BLOCKED_PRODUCTION_DOMAINS",
    "HttpxClient",
    "NetworkSafetyGate",
]
