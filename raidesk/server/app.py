from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import SessionService
from ..config.runtime import ServerSettings, get_server_settings
from ..core.errors import PlanNotFoundError, SessionBusyError, SessionNotFoundError, StorageError
from ..core.logging.logger import get_logger
from .routes import health, sessions


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": {"error": error, "message": message}})


def create_app(settings: ServerSettings | None = None, service: SessionService | None = None) -> FastAPI:
    settings = settings or get_server_settings()
    get_logger()
    service = service or SessionService()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        service.close()

    app = FastAPI(title="RAiDesk", version=settings.version, lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "X-Request-ID"],
        )

    @app.middleware("http")
    async def security_headers(request: Request, call_next: Callable):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(request: Request, exc: SessionNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "session_not_found", f"Unknown session: {exc}")

    @app.exception_handler(PlanNotFoundError)
    async def plan_not_found(request: Request, exc: PlanNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "plan_not_found", f"Unknown plan: {exc}")

    @app.exception_handler(SessionBusyError)
    async def session_busy(request: Request, exc: SessionBusyError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, "session_busy", str(exc))

    @app.exception_handler(StorageError)
    async def storage_failed(request: Request, exc: StorageError) -> JSONResponse:
        get_logger("server").error("Storage failure: %s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "storage_failed", str(exc))

    @app.exception_handler(NotImplementedError)
    async def not_implemented(request: Request, exc: NotImplementedError) -> JSONResponse:
        return _error(status.HTTP_501_NOT_IMPLEMENTED, "not_implemented", str(exc))

    app.include_router(health.router)
    app.include_router(sessions.router)

    return app
