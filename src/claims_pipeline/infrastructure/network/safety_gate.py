"""Outbound allowlist policy and the HTTP decorator that enforces it."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

from claims_pipeline.domain.errors import OutboundRequestBlockedError, UnsafeNetworkPostureError
from claims_pipeline.domain.network import (
    DEFAULT_ALLOWED_PREFIXES,
    AllowlistDecision,
    EdiMode,
    HttpResponse,
)
from claims_pipeline.domain.ports import HttpClient

logger = logging.getLogger(__name__)

_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

# Production insurer domains that get an explicit block reason in sandbox mode.
BLOCKED_PRODUCTION_DOMAINS: tuple[str, ...] = (
    "manulife.ca",
    "sunlife.ca",
    "telus.com",
    "telus.ca",
    "wsib.on.ca",
    "wcb.mb.ca",
    "worksafebc.com",
    "claims.greenshield.ca",
    "provider.canadalife.com",
    "canadalife.com",
    "bluecross.ca",
    "desjardins.com",
    "ssq.ca",
    "ia.ca",
    "empire.ca",
    "manulifegroup.com",
    "provider.medavie.ca",
)


class AllowlistPolicy:
    """Decide whether a hostname may receive outbound traffic."""

    def __init__(
        self,
        mode: EdiMode = EdiMode.SANDBOX,
        allowed_prefixes: Iterable[str] = DEFAULT_ALLOWED_PREFIXES,
        allow_production_domains: bool = False,
    ) -> None:
        self._mode = mode
        self._allowed_prefixes = tuple(
            prefix.strip().lower() for prefix in allowed_prefixes if prefix.strip()
        )
        self._allow_production_domains = allow_production_domains

    @property
    def mode(self) -> EdiMode:
        return self._mode

    @property
    def allowed_prefixes(self) -> tuple[str, ...]:
        return self._allowed_prefixes

    @property
    def allow_production_domains(self) -> bool:
        return self._allow_production_domains

    def decide(self, hostname: str) -> AllowlistDecision:
        """Return the verdict for one hostname; unknown hosts are blocked."""

        normalized = self._normalize_hostname(hostname)
        if not normalized:
            return AllowlistDecision(hostname=hostname, allowed=False, reason="Hostname is empty")

        if normalized in _LOOPBACK_HOSTS:
            return AllowlistDecision(
                hostname=hostname,
                allowed=True,
                reason="Localhost is always allowed",
            )

        for prefix in self._allowed_prefixes:
            if normalized.startswith(prefix) or f".{prefix}" in normalized:
                return AllowlistDecision(
                    hostname=hostname,
                    allowed=True,
                    reason=f"Matches allowed prefix: {prefix}",
                )

        if self._mode is EdiMode.LIVE and self._allow_production_domains:
            return AllowlistDecision(
                hostname=hostname,
                allowed=True,
                reason="Production domains are permitted in live mode",
            )

        for blocked in BLOCKED_PRODUCTION_DOMAINS:
            if normalized == blocked or normalized.endswith(f".{blocked}"):
                return AllowlistDecision(
                    hostname=hostname,
                    allowed=False,
                    reason=f"Production domain explicitly blocked: {blocked}",
                )

        return AllowlistDecision(
            hostname=hostname,
            allowed=False,
            reason="Domain not in allowed list (strict mode)",
        )

    def verify_startup_posture(self) -> None:
        """Abort on contradictory settings and warn on surprising ones."""

        if self._mode is EdiMode.SANDBOX and self._allow_production_domains:
            raise UnsafeNetworkPostureError(
                "EDI mode is 'sandbox' but production domains are permitted. "
                "Set CLAIMS_EDI_MODE=live or disable CLAIMS_ALLOW_PRODUCTION_DOMAINS."
            )

        if self._mode is EdiMode.SANDBOX:
            if not self._allowed_prefixes:
                logger.warning(
                    "EDI sandbox mode is active with an empty outbound allowlist; "
                    "every non-loopback destination will be blocked."
                )
                return
            logger.info(
                "EDI sandbox mode active; outbound calls limited to prefixes: %s",
                ", ".join(self._allowed_prefixes),
            )
            return

        if not self._allow_production_domains:
            logger.warning(
                "EDI live mode is active but production domains are not permitted; "
                "outbound calls remain limited to prefixes: %s",
                ", ".join(self._allowed_prefixes) or "<none>",
            )
            return
        logger.warning("EDI live mode active; production insurer domains are reachable.")

    def _normalize_hostname(self, hostname: str) -> str:
        normalized = hostname.strip().lower().rstrip(".")
        if normalized.startswith("[") and normalized.endswith("]"):
            return normalized[1:-1]
        host, separator, port = normalized.rpartition(":")
        if separator and host and ":" not in host and port.isdigit():
            return host
        return normalized


class NetworkSafetyGate(HttpClient):
    """HTTP client decorator that refuses calls to non-allowlisted hosts."""

    def __init__(self, inner: HttpClient, policy: AllowlistPolicy) -> None:
        self._inner = inner
        self._policy = policy

    @property
    def policy(self) -> AllowlistPolicy:
        return self._policy

    def decide(self, hostname: str) -> AllowlistDecision:
        """Evaluate `hostname` without sending anything; the verdict is logged."""

        decision = self._policy.decide(hostname)
        logger.info(
            "Allowlist check for host '%s': allowed=%s (%s)",
            decision.hostname,
            decision.allowed,
            decision.reason,
            extra=self._decision_extra(decision),
        )
        return decision

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        hostname = self._hostname_from_url(url)
        decision = self._policy.decide(hostname)
        log_extra = self._decision_extra(decision)
        if not decision.allowed:
            logger.warning(
                "SANDBOX_BLOCKED: %s %s refused for host '%s': %s",
                method,
                url,
                hostname,
                decision.reason,
                extra=log_extra,
            )
            raise OutboundRequestBlockedError(hostname, decision.reason)

        logger.info(
            "Outbound %s to host '%s' allowed: %s",
            method,
            hostname,
            decision.reason,
            extra=log_extra,
        )
        request_headers = dict(headers or {})
        if self._policy.mode is EdiMode.SANDBOX:
            request_headers["X-Sandbox-Mode"] = "true"
            request_headers["X-Sandbox-Timestamp"] = datetime.now(tz=UTC).isoformat()
        return await self._inner.request(
            method,
            url,
            headers=request_headers,
            json=json,
            data=data,
            params=params,
        )

    def _decision_extra(self, decision: AllowlistDecision) -> dict[str, Any]:
        return {
            "outbound_host": decision.hostname,
            "outbound_allowed": decision.allowed,
            "outbound_reason": decision.reason,
        }

    def _hostname_from_url(self, url: str) -> str:
        try:
            return urlsplit(url.strip()).hostname or ""
        except ValueError:
            return ""


__all__ = ["AllowlistPolicy", "BLOCKED_PRODUCTION_DOMAINS", "NetworkSafetyGate"]
