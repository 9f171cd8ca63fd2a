"""
FastAPI application factory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from taleweaver.api.routes import health, media, story
from taleweaver.common import ErrorKind, Settings, TaleWeaverError, configure_logging, get_settings
from taleweaver.pipeline import TaleWeaverOrchestrator

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    orchestrator: TaleWeaverOrchestrator | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    orchestrator = orchestrator or TaleWeaverOrchestrator.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        orchestrator.shutdown(wait=False)

    app = FastAPI(title="TaleWeaver API", lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    @app.exception_handler(TaleWeaverError)
    async def handle_taleweaver_error(request: Request, exc: TaleWeaverError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": ErrorKind.VALIDATION.value, "message": details or "Invalid request"},
        )

    app.include_router(health.router)
    app.include_router(story.router, prefix=settings.api_prefix)
    app.include_router(media.router)
    return app
