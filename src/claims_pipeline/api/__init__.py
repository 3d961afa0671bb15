"""HTTP API package."""

from claims_pipeline.api.router import api_router

__all__ = ["api_router"]
