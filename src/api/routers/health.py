"""Health check."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.dependencies import get_services
from src.services import AnalysisServices

router = APIRouter(prefix="/api/v1", tags=["health"])

_STARTED_AT = time.monotonic()


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_sec: int
    token_list_cached: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(services: AnalysisServices = Depends(get_services)) -> HealthResponse:
    """Liveness only: upstream APIs are not probed."""
    from src.api.app import API_VERSION

    return HealthResponse(
        status="ok",
        version=API_VERSION,
        uptime_sec=int(time.monotonic() - _STARTED_AT),
        token_list_cached=services.enricher.token_cache.is_fresh(),
    )
