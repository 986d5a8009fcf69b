from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ..schemas import BackendStatusResponse, HealthResponse


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    version = request.app.state.settings.version
    mode = "mock" if request.app.state.service.default_mock else "production"
    return HealthResponse(status="ok", version=version, time=datetime.now(timezone.utc).isoformat(), mode=mode)


@router.get("/backend", response_model=BackendStatusResponse)
def backend_status(request: Request) -> BackendStatusResponse:
    return BackendStatusResponse(**request.app.state.service.backend_status())
