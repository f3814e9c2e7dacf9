"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hubresolve.api.routes import health, models, runtime
from hubresolve.core.config import AppSettings
from hubresolve.core.exceptions import (
    AuthenticationRequiredError,
    ModelNotFoundError,
    RepositoryNotFoundError,
    ResolutionError,
)
from hubresolve.core.logging_config import configure_logging
from hubresolve.service import ResolutionService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    if not hasattr(app.state, "service"):
        settings = AppSettings()
        configure_logging(settings.log_level)
        app.state.settings = settings
        app.state.service = ResolutionService(settings)
    yield
    app.state.service.close()


async def resolution_error_handler(request: Request, exc: ResolutionError) -> JSONResponse:
    if isinstance(exc, (RepositoryNotFoundError, ModelNotFoundError)):
        status = 404
    elif isinstance(exc, AuthenticationRequiredError):
        status = 401
    else:
        status = 502
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "repo_id": exc.repo_id, "stage": exc.stage},
    )


def create_app(service: ResolutionService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    A pre-built ``service`` skips settings loading in the lifespan.
    """
    app = FastAPI(
        title="hubresolve",
        version="0.1.0",
        lifespan=lifespan,
    )
    if service is not None:
        app.state.settings = service.settings
        app.state.service = service
    app.add_exception_handler(ResolutionError, resolution_error_handler)
    app.include_router(health.router)
    app.include_router(models.router, prefix="/models")
    app.include_router(runtime.router, prefix="/runtime")
    return app
