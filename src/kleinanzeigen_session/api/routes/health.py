"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from kleinanzeigen_session import __version__
from kleinanzeigen_session.api.dependencies import SessionServiceDep
from kleinanzeigen_session.api.schemas import HealthResponse, LivenessResponse
from kleinanzeigen_session.utils.config import get_settings


router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Service status with stored account count and scheduler state.",
)
async def health_check(service: SessionServiceDep) -> HealthResponse:
    accounts = await service.store.list_accounts()
    return HealthResponse(
        status="healthy",
        version=__version__,
        env=get_settings().env,
        accounts=len(accounts),
        scheduler=service.auto_refresh_status().to_dict(),
    )


@router.get(
    "/health/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Simple check if service is alive (Kubernetes liveness probe).",
)
async def liveness_check() -> LivenessResponse:
    return LivenessResponse()
