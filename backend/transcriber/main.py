"""ASGI entry-point for the FastAPI application.

This module
1. instantiates the :class:`fastapi.FastAPI` application around an explicitly
   constructed :class:`~transcriber.services.transcription.TranscriptionService`;
2. wires the API routers located in ``transcriber.api``;
3. registers global exception handlers and middleware; and
4. performs start-up checks (upload/temp directories, provider credential)
   and drains background jobs on shutdown.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from transcriber import __version__
from transcriber.api import api_router
from transcriber.config import Settings, settings as default_settings
from transcriber.errors import TranscriptionServiceError
from transcriber.logging_config import setup_logging
from transcriber.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 30.0


def _error_body(message: str) -> dict:
    return {"success": False, "error": message}


def create_app(
    app_settings: Optional[Settings] = None,
    service: Optional[TranscriptionService] = None,
) -> FastAPI:  # noqa: D401 – factory nomenclature is fine
    """Wire and return the FastAPI application instance."""

    app_settings = app_settings or (service.settings if service else default_settings)
    service = service or TranscriptionService.from_settings(app_settings)

    app = FastAPI(
        title="Transcription Pipeline API",
        version=__version__,
        docs_url="/api/docs",
    )
    app.state.settings = app_settings
    app.state.transcription_service = service

    # ------------------------------------------------------------------
    # Start-up / shutdown
    # ------------------------------------------------------------------

    @app.on_event("startup")
    async def _startup_checks() -> None:  # noqa: D401
        logger.info("Running start-up checks …")
        service.preparer.ensure_directories()
        if not app_settings.GROQ_API_KEY:
            logger.warning("GROQ_API_KEY is not set. Transcription calls will fail.")
        logger.info("Upload dir : %s", app_settings.UPLOAD_DIR)
        logger.info("Temp dir   : %s", app_settings.TEMP_DIR)
        logger.info("Max file   : %dMB", app_settings.MAX_FILE_SIZE_MB)
        logger.info("Chunk size : %ds", app_settings.CHUNK_DURATION_SECONDS)
        logger.info("Start-up checks finished.")

    @app.on_event("shutdown")
    async def _drain_jobs() -> None:  # noqa: D401
        await service.drain(timeout=SHUTDOWN_GRACE_SECONDS)

    # ------------------------------------------------------------------
    # Exception handlers
    # ------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(  # noqa: D401
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.error("Request validation error: %s", exc.errors())
        return JSONResponse(status_code=422, content={**_error_body("Invalid request."), "detail": exc.errors()})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(  # noqa: D401
        _request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        logger.error("HTTP exception %s: %s", exc.status_code, exc.detail)
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=_error_body(message))

    @app.exception_handler(TranscriptionServiceError)
    async def _app_error_handler(  # noqa: D401
        _request: Request,
        exc: TranscriptionServiceError,
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Application exception: %s", exc.detail, exc_info=exc)
        else:
            logger.warning("Request rejected (%s): %s", exc.status_code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail))

    @app.exception_handler(Exception)
    async def _generic_error_handler(  # noqa: D401
        _request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content=_error_body("Internal server error. Please try again."))

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _log_requests(request: Request, call_next):  # noqa: D401
        logger.debug("%s %s", request.method, request.url.path)
        return await call_next(request)

    # ------------------------------------------------------------------
    # Routers
    # ------------------------------------------------------------------

    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def _index() -> dict:  # noqa: D401
        return {
            "message": "Transcription Pipeline API",
            "version": __version__,
            "docs": {
                "health": "GET  /api/transcriptions/health",
                "syncMode": "POST /api/transcriptions/sync   (form-data: audio)",
                "asyncMode": "POST /api/transcriptions/async  (form-data: audio)",
                "jobStatus": "GET  /api/transcriptions/jobs/{jobId}",
            },
        }

    return app


def get_app() -> FastAPI:
    """Factory for ``uvicorn --factory transcriber.main:get_app``."""
    setup_logging()
    return create_app()


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=default_settings.PORT)
