"""
FastAPI application exposing the bookmark engine.

Usage:
    uvicorn app.api.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from app.api.error_handlers import (
    api_exception_handler,
    engine_exception_handler,
    global_exception_handler,
    validation_exception_handler,
)
from app.api.exceptions import APIException
from app.api.middleware import correlation_id_middleware
from app.api.models.responses import success_response
from app.api.routers import bookmarks
from app.config import AppConfig, load_config
from app.core.logging_utils import setup_json_logging
from app.core.time_utils import UTC
from app.domain.exceptions.domain_exceptions import BookmarkEngineError
from app.services.engine import BookmarkEngine

logger = logging.getLogger(__name__)


def create_app(cfg: AppConfig | None = None, engine: BookmarkEngine | None = None) -> FastAPI:
    """Build the application.

    A pre-built ``engine`` is served as is and its lifecycle stays with the
    caller; otherwise one is built from ``cfg`` (or the environment) and
    started and stopped by the lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            yield
            return

        config = cfg or load_config()
        setup_json_logging(
            config.runtime.log_level,
            use_loguru=config.runtime.use_loguru,
            log_file=config.runtime.log_file,
        )
        owned = BookmarkEngine(config)
        await owned.start()
        app.state.engine = owned
        try:
            yield
        finally:
            await owned.stop()
            app.state.engine = None

    app = FastAPI(
        title="Bookmark Sync API",
        description="Bookmark collection served from the object store cache",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.engine = engine

    app.middleware("http")(correlation_id_middleware)
    app.include_router(bookmarks.router, prefix="/v1/bookmarks", tags=["Bookmarks"])

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        current = request.app.state.engine
        return success_response(
            {
                "status": "healthy" if current is not None and current.started else "starting",
                "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            },
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(BookmarkEngineError, engine_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    # Development server - bind to all interfaces for Docker/container access
    uvicorn.run(
        "app.api.main:app",
        # nosec B104 - intentional for development/Docker environments
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
