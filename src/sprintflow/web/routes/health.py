"""Liveness and readiness probes.

Neither probe is wrapped in the response envelope or needs ``X-User-ID``.
``/health/ready`` answers 503 while the database cannot run ``SELECT 1``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text

from sprintflow.logging import get_logger
from sprintflow.services import Services
from sprintflow.web.dependencies import get_services

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    database: str


async def database_reachable(services: Services) -> bool:
    try:
        async with services.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("readiness_check_failed", error=str(exc))
        return False
    return True


def create_health_router() -> APIRouter:
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("/", response_model=HealthResponse)
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @router.get("/ready", response_model=ReadinessResponse)
    async def readiness(
        response: Response,
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        if await database_reachable(services):
            return {"status": "ok", "database": "connected"}

        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "database": "disconnected"}

    return router
