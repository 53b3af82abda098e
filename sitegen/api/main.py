"""API service - FastAPI over the metadata store and the job queue."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time
import uuid

from fastapi import FastAPI, Request
import structlog

from sitegen import __version__
from sitegen.config import get_settings
from sitegen.database import Database
from sitegen.logging_config import log_context, setup_logging
from sitegen.queues import ensure_consumer_groups
from sitegen.redis_client import RedisStreamClient
from sitegen.storage import SqlProjectStore

from . import routers


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(service_name="api", log_format=settings.log_format, log_level=settings.log_level)

    db = Database.from_settings(settings)
    db.connect()
    stream = RedisStreamClient(settings.redis_url)
    await stream.connect()
    await ensure_consumer_groups(stream.redis)

    app.state.settings = settings
    app.state.store = SqlProjectStore(db)
    app.state.stream = stream
    yield
    # Shutdown
    await stream.close()
    await db.dispose()


app = FastAPI(
    title="Sitegen API",
    description="Job submission and project metadata",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID", f"req_{uuid.uuid4().hex[:8]}")
    start = time.time()
    logger = structlog.get_logger()

    with log_context(correlation_id=correlation_id, method=request.method, path=request.url.path):
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            logger.error(
                "http_request_exception",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
                exc_info=True,
            )
            raise

        duration_ms = (time.time() - start) * 1000
        if response.status_code >= 500:  # noqa: PLR2004
            logger.error(
                "http_request_failed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
        else:
            logger.info(
                "http_request", status_code=response.status_code, duration_ms=round(duration_ms, 2)
            )

    response.headers["X-Correlation-ID"] = correlation_id
    return response


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Sitegen API",
        "version": __version__,
        "description": "Job submission and project metadata",
    }


app.include_router(routers.health.router)
app.include_router(routers.jobs.router, prefix="/api")
app.include_router(routers.projects.router, prefix="/api")
