"""Berth FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from berth import __version__
from berth.api.dependencies import get_isolator
from berth.config import get_settings
from berth.errors import BerthError, PersistenceError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    logger.info(
        "berth.startup",
        version=__version__,
        work_dir=settings.work_dir,
        tool=settings.tool.path,
    )

    # Claims made before a restart must be known before the first prepare
    try:
        restored = await get_isolator().load()
    except PersistenceError as e:
        # Never serve with an empty registry over an unreadable snapshot
        logger.error(
            "berth.claims_restore_failed",
            path=str(settings.snapshot_path),
            error=e.message,
            action="repair the snapshot file, then restart berth",
        )
        raise
    logger.info("berth.claims_restored", containers=restored)

    yield

    logger.info("berth.shutdown")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Berth",
        description="Reference-counted external volume mounts for agent containers",
        version=__version__,
        lifespan=lifespan,
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add request ID to all requests."""
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    @app.exception_handler(BerthError)
    async def berth_error_handler(request: Request, exc: BerthError):
        """Handle Berth errors with consistent format."""
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id),
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    from berth.api.v1 import router as v1_router

    app.include_router(v1_router, prefix="/v1")

    return app


# Create default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "berth.main:app",
        host=settings.server.host,
        port=settings.server.port,
    )
