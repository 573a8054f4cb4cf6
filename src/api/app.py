"""FastAPI application factory for the wallet analysis tools."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config.settings import settings
from src.parsers.errors import InvalidAddressError
from src.services import AnalysisServices

# Rate limiter (shared instance)
limiter = Limiter(key_func=get_remote_address)

API_VERSION = "0.1.0"


async def _invalid_address_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


def create_app(services: AnalysisServices | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    ``services`` is injected by tests; otherwise the clients are built from
    settings on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = services is None
        app.state.services = services or AnalysisServices.from_settings()
        logger.info("[API] Services ready")
        try:
            yield
        finally:
            if owned:
                await app.state.services.close()

    app = FastAPI(
        title="Wallet Radar API",
        version=API_VERSION,
        docs_url="/api/docs" if settings.api_debug else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if settings.api_debug else None,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(InvalidAddressError, _invalid_address_handler)

    # Import and include routers
    from src.api.routers.analysis import router as analysis_router
    from src.api.routers.health import router as health_router

    app.include_router(health_router)
    app.include_router(analysis_router)

    return app
