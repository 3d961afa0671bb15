"""Route modules public API."""

from claims_pipeline.api.routes.health import router as health_router
from claims_pipeline.api.routes.jobs import router as jobs_router
from claims_pipeline.api.routes.network import router as network_router

__all__ = ["health_router", "jobs_router", "network_router"]
