"""Root API router with health endpoints and module mounting."""

from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from keystone.api.dependencies import DB, AppSettings
from keystone.core.auth.routes import router as auth_router
from keystone.core.errors import InfrastructureError
from keystone.modules import discover_modules


logger = structlog.get_logger()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    status: str
    checks: dict[str, str]


# Health check endpoints (no /api/v1 prefix)
health_router = APIRouter(tags=["health"])


@health_router.get(
    "/health/live",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Returns 200 if the process is running.",
)
async def liveness() -> HealthResponse:
    """Liveness probe endpoint."""
    return HealthResponse(status="alive")


@health_router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Checks database connectivity.",
)
async def readiness(database: DB) -> JSONResponse:
    """Readiness probe endpoint."""
    checks: dict[str, str] = {}

    try:
        await database.ping()
        checks["database"] = "ok"
    except Exception as exc:  # noqa: BLE001
        # Reported, not raised: a degraded store is this endpoint's answer
        logger.warning("readiness_check_failed", check="database", error_type=type(exc).__name__)
        checks["database"] = InfrastructureError.message

    all_ok = all(v == "ok" for v in checks.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK
        if all_ok
        else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_ok else "degraded",
            "checks": checks,
        },
    )


@health_router.get(
    "/info",
    summary="Application info",
    description="Returns application metadata.",
)
async def info(settings: AppSettings) -> dict[str, Any]:
    """Application info endpoint."""
    return {
        "app": settings.app_name,
        "environment": settings.environment,
        "debug": settings.debug,
    }


def build_api_router() -> APIRouter:
    """Health endpoints plus every module under ``/api/v1``."""
    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(auth_router)
    for module_router in discover_modules():
        v1_router.include_router(module_router)

    api_router = APIRouter()
    api_router.include_router(health_router)
    api_router.include_router(v1_router)
    return api_router
