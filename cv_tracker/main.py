from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import uuid

import structlog

from cv_tracker.core.config import settings
from cv_tracker.core.container import ServiceContainer, build_container
from cv_tracker.core.database import create_tables
from cv_tracker.core.exceptions import TrackerError
from cv_tracker.core.logging import configure_logging
from cv_tracker.api.v1 import applications, auth, media

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        container: Pre-built services (tests); built from settings at startup if None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.container is None:
            app.state.container = build_container(settings)
        configure_logging(app.state.container.settings.app_env)
        await create_tables(app.state.container.engine)
        logger.info("CV tracker API started")
        yield
        await app.state.container.dispose()

    app = FastAPI(
        title="CV Tracker API",
        description="Job application tracker with CV and cover letter attachments",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request.headers.get("x-request-id") or uuid.uuid4().hex)
        return await call_next(request)

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(request: Request, exc: TrackerError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(applications.router, prefix="/api/applications", tags=["Applications"])
    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(media.router, prefix="/media", tags=["Media"])

    @app.get("/healthz")
    async def health_check():
        """Health check endpoint"""
        return {"status": "ok", "version": "1.0.0"}

    return app


app = create_app()
