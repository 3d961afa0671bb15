"""Outbound network posture routes."""

from fastapi import APIRouter, Depends, Path

from claims_pipeline.api.dependencies import get_outbound_client
from claims_pipeline.domain.job_models import AllowlistDecisionResponse
from claims_pipeline.infrastructure.network import NetworkSafetyGate

router = APIRouter(prefix="/network", tags=["network"])


@router.get(
    "/allowlist/{hostname}",
    response_model=AllowlistDecisionResponse,
    status_code=200,
)
async def check_hostname(
    hostname: str = Path(...),
    outbound_client: NetworkSafetyGate = Depends(get_outbound_client),
) -> AllowlistDecisionResponse:
    """Report whether outbound calls to `hostname` would be allowed."""

    return AllowlistDecisionResponse.from_decision(outbound_client.decide(hostname))


__all__ = ["router"]
