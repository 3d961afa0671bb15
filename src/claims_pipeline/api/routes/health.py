"""Liveness route."""

from fastapi import APIRouter, Depends

from claims_pipeline.api.dependencies import get_settings
from claims_pipeline.config import Settings

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Liveness probe reporting the outbound EDI mode."""

    return {"status": "ok", "ediMode": settings.edi_mode.value}


__all__ = ["router"]
