"""PostgreSQL repository implementation for claims and connector settings."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

import asyncpg  # type: ignore[import-untyped]

from claims_pipeline.domain.claims import (
    Claim,
    ClaimStatus,
    ClaimType,
    PatientDetails,
    ProviderDetails,
)
from claims_pipeline.domain.ports import ClaimRepository, ConnectorConfigRepository
from claims_pipeline.domain.rails import ConnectorConfig, ConnectorMode, Rail

_SELECT_CLAIM = """
    SELECT
        c.id,
        c.org_id,
        c.patient_id,
        c.provider_id,
        c.insurer_id,
        c.amount,
        c.currency,
        c.status,
        c.claim_type,
        c.codes,
        c.notes,
        c.external_id,
        c.reference_number,
        p.name AS patient_name,
        p.dob AS patient_dob,
        p.identifiers AS patient_identifiers,
        pr.name AS provider_name,
        pr.licence_number AS provider_licence_number,
        pr.identifiers AS provider_identifiers
    FROM claims AS c
    LEFT JOIN patients AS p ON p.id = c.patient_id
    LEFT JOIN providers AS pr ON pr.id = c.provider_id
"""

# Claim attribute -> column; JSON columns are encoded before binding.
_UPDATABLE_COLUMNS: dict[str, str] = {
    "status": "status",
    "external_id": "external_id",
    "reference_number": "reference_number",
    "notes": "notes",
    "amount": "amount",
    "currency": "currency",
    "codes": "codes",
}
_JSON_COLUMNS = frozenset({"codes"})


class PostgresClaimRepository(ClaimRepository, ConnectorConfigRepository):
    """Claim repository backed by PostgreSQL."""

    def __init__(
        self,
        dsn: str,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
    ) -> None:
        self._dsn = dsn
        self._min_pool_size = min_pool_size
        self._max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def get_claim(self, claim_id: str) -> Claim | None:
        """Return a claim with its patient and provider snapshot."""

        pool = await self._get_pool()
        row = await pool.fetchrow(f"{_SELECT_CLAIM} WHERE c.id = $1", claim_id)
        if row is None:
            return None
        return self._to_claim(row)

    async def update_claim(self, claim_id: str, fields: Mapping[str, Any]) -> Claim | None:
        """Apply a partial update in one statement and return the updated claim."""

        unknown = set(fields) - set(_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Unsupported claim fields: {', '.join(sorted(unknown))}.")
        if not fields:
            return await self.get_claim(claim_id)

        assignments: list[str] = []
        values: list[Any] = [claim_id]
        for name, value in fields.items():
            column = _UPDATABLE_COLUMNS[name]
            values.append(self._encode_value(column, value))
            cast = "::jsonb" if column in _JSON_COLUMNS else ""
            assignments.append(f"{column} = ${len(values)}{cast}")

        pool = await self._get_pool()
        result = await pool.execute(
            f"""
            UPDATE claims
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = $1
            """,
            *values,
        )
        if not result.endswith("1"):
            return None
        return await self.get_claim(claim_id)

    async def get_connector_config(self, org_id: str, rail: Rail) -> ConnectorConfig | None:
        """Return the rail configuration stored for an organization."""

        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            SELECT org_id, name, enabled, mode, endpoint, settings
            FROM connector_configs
            WHERE org_id = $1 AND name = $2
            """,
            org_id,
            rail.value,
        )
        if row is None:
            return None
        return ConnectorConfig(
            org_id=str(row["org_id"]),
            rail=Rail(row["name"]),
            enabled=bool(row["enabled"]),
            mode=ConnectorMode(row["mode"]),
            endpoint=row["endpoint"],
            settings=self._decode_dict(row["settings"]),
        )

    async def close(self) -> None:
        """Close the pool if it was initialized."""

        pool = self._pool
        self._pool = None
        if pool is not None:
            await pool.close()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_pool_size,
                    max_size=self._max_pool_size,
                )
                await self._ensure_schema(pool)
                self._pool = pool
        assert self._pool is not None
        return self._pool

    async def _ensure_schema(self, pool: asyncpg.Pool) -> None:
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS patients (
                id TEXT PRIMARY KEY,
                org_id TEXT NOT NULL,
                name TEXT NOT NULL,
                dob DATE,
                identifiers JSONB NOT NULL DEFAULT '{}'::jsonb
            );
            """
        )
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS providers (
                id TEXT PRIMARY KEY,
                org_id TEXT NOT NULL,
                name TEXT NOT NULL,
                licence_number TEXT,
                identifiers JSONB NOT NULL DEFAULT '{}'::jsonb
            );
            """
        )
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS claims (
                id TEXT PRIMARY KEY,
                org_id TEXT NOT NULL,
                patient_id TEXT NOT NULL,
                provider_id TEXT NOT NULL,
                insurer_id TEXT NOT NULL,
                amount NUMERIC(12, 2) NOT NULL,
                currency TEXT NOT NULL DEFAULT 'CAD',
                status TEXT NOT NULL DEFAULT 'draft',
                claim_type TEXT NOT NULL DEFAULT 'claim',
                codes JSONB NOT NULL DEFAULT '[]'::jsonb,
                notes TEXT,
                external_id TEXT,
                reference_number TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            CREATE INDEX IF NOT EXISTS idx_claims_org_status
                ON claims (org_id, status);
            """
        )
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS connector_configs (
                org_id TEXT NOT NULL,
                name TEXT NOT NULL,
                enabled BOOLEAN NOT NULL DEFAULT FALSE,
                mode TEXT NOT NULL DEFAULT 'sandbox',
                endpoint TEXT,
                settings JSONB NOT NULL DEFAULT '{}'::jsonb,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                PRIMARY KEY (org_id, name)
            );
            """
        )

    def _to_claim(self, row: asyncpg.Record) -> Claim:
        patient = None
        if row["patient_name"] is not None:
            patient = PatientDetails(
                name=str(row["patient_name"]),
                date_of_birth=row["patient_dob"],
                identifiers=self._decode_dict(row["patient_identifiers"]),
            )
        provider = None
        if row["provider_name"] is not None:
            provider = ProviderDetails(
                name=str(row["provider_name"]),
                licence_number=row["provider_licence_number"],
                identifiers=self._decode_dict(row["provider_identifiers"]),
            )
        return Claim(
            claim_id=str(row["id"]),
            org_id=str(row["org_id"]),
            patient_id=str(row["patient_id"]),
            provider_id=str(row["provider_id"]),
            insurer_id=str(row["insurer_id"]),
            amount=Decimal(row["amount"]),
            currency=str(row["currency"]),
            status=ClaimStatus(row["status"]),
            claim_type=ClaimType(row["claim_type"]),
            codes=self._decode_list(row["codes"]),
            notes=row["notes"],
            external_id=row["external_id"],
            reference_number=row["reference_number"],
            patient=patient,
            provider=provider,
        )

    def _encode_value(self, column: str, value: Any) -> Any:
        if column in _JSON_COLUMNS:
            return json.dumps(value)
        if isinstance(value, Enum):
            return value.value
        return value

    def _decode_json_field(self, value: object) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            return json.loads(value)
        return value

    def _decode_list(self, value: object) -> list[dict[str, Any]]:
        decoded = self._decode_json_field(value)
        if decoded is None:
            return []
        if not isinstance(decoded, list):
            raise TypeError(f"Expected list payload for codes, got {type(decoded)!r}.")
        return [item for item in decoded if isinstance(item, dict)]

    def _decode_dict(self, value: object) -> dict[str, Any]:
        decoded = self._decode_json_field(value)
        if decoded is None:
            return {}
        if not isinstance(decoded, dict):
            raise TypeError(f"Expected dict payload, got {type(decoded)!r}.")
        return decoded


__all__ = ["PostgresClaimRepository"]
