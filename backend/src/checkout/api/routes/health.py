"""
Health check endpoint.
"""

from fastapi import APIRouter

from checkout import __version__
from checkout.api.responses import success
from checkout.api.schemas import ApiResponse, HealthData

router = APIRouter(tags=["health"])


@router.get("/health", response_model=ApiResponse)
async def health_check() -> ApiResponse:
    """Liveness check; does not touch the database or the gateway."""
    return success(HealthData(version=__version__).model_dump(), next_step=None, recommendation=None)
