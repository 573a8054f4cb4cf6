"""FastAPI dependency injection: shared upstream services."""

from __future__ import annotations

from fastapi import Request

from src.services import AnalysisServices


def get_services(request: Request) -> AnalysisServices:
    """Return the process-wide services built at startup."""
    return request.app.state.services
