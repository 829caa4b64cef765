"""FastAPI application factory."""

import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import FastAPI, Request, Response
from sqlalchemy.engine import Engine

from pwrmon import __version__
from pwrmon.api.errors import register_error_handlers
from pwrmon.api.responses import envelope
from pwrmon.api.routes import auth, devices, iot
from pwrmon.config.logging import bind_request
from pwrmon.config.settings import Settings, get_settings
from pwrmon.db.engine import create_engine, create_tables

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """Build the application.

    The engine is created on startup and disposed on shutdown unless one is
    passed in, in which case the caller owns it.

    Args:
        settings: Application settings, loaded from the environment if omitted.
        engine: Optional pre-built engine.
        clock: Source of server timestamps.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = engine is None
        app.state.engine = engine if engine is not None else create_engine(settings)
        create_tables(app.state.engine)
        logger.info("Application started", database=app.state.engine.url.render_as_string())
        try:
            yield
        finally:
            if owned:
                app.state.engine.dispose()
            logger.info("Application stopped")

    app = FastAPI(title="Power Monitor", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.clock = clock
    if engine is not None:
        app.state.engine = engine

    @app.middleware("http")
    async def log_requests(request: Request, call_next) -> Response:
        request_id = bind_request(
            request.method, request.url.path, request.headers.get("X-Request-ID")
        )
        start = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "Request handled",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        return response

    register_error_handlers(app)

    prefix = settings.api_prefix.rstrip("/")
    app.include_router(iot.router, prefix=prefix)
    app.include_router(devices.router, prefix=prefix)
    app.include_router(auth.router, prefix=prefix)

    @app.get(f"{prefix}/health", tags=["Health"])
    def health() -> dict:
        return envelope(
            "Power Monitor API is running",
            {"status": "ok", "version": __version__, "timestamp": clock()},
        )

    return app
