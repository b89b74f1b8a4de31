"""
Main entrypoint for the Music Library API.

This module assembles the FastAPI application, sets up logging and
includes versioned routers.  The ``create_app`` function builds
and configures the app, which is then instantiated at module
import time as ``app``.  Run it with uvicorn, e.g.::

    uvicorn music_library_api.app.main:app --reload

The application title and version are provided via ``Settings`` from
``core.config``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.logging_config import setup_logging
from .core.errors import MusicLibraryError
from .api.v1.router import router as v1_router
from .core.db import init_db


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Configures logging, includes the versioned API routers and
    registers the handler that turns ``MusicLibraryError`` into a JSON
    body of the form ``{"status": ..., "message": "<op>: <message>"}``.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    setup_logging(settings.log_level, settings.log_file or None, settings.log_format)

    app = FastAPI(title=settings.project_name, version=settings.api_version)

    app.include_router(v1_router, prefix="/api/v1")

    @app.exception_handler(MusicLibraryError)
    async def music_library_error_handler(request: Request, exc: MusicLibraryError) -> JSONResponse:
        if exc.status_code >= 500:
            logging.getLogger(__name__).error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": exc.status_code, "message": str(exc)},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        # Creates the database file if needed and applies migrations
        init_db()

    return app


app = create_app()
