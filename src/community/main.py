"""FastAPI application entry point for the community engine.

The process exposes operational endpoints only: liveness, readiness and
Prometheus metrics. The engine itself is reached in-process through the
service container built during startup.
"""

from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import structlog
from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from src.community.config import EngineSettings, get_settings
from src.community.container import ServiceContainer, build_container
from src.community.logging_config import configure_logging


logger = structlog.get_logger(__name__)

# Initialized during lifespan startup
container: Optional[ServiceContainer] = None


def _redact_database_url(url: Optional[str]) -> Optional[str]:
    """Hide the password in a connection URL, keeping user and host."""
    if not url:
        return url
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":****@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def _log_configuration(settings: EngineSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info(
        "Engine configuration",
        database_url=_redact_database_url(settings.database_url),
        db_min_pool_size=settings.db_min_pool_size,
        db_max_pool_size=settings.db_max_pool_size,
        store_timeout_seconds=settings.store_timeout_seconds,
        default_top_k=settings.default_top_k,
        trending_scan_limit=settings.trending_scan_limit,
        log_level=settings.log_level,
        host=settings.host,
        port=settings.port,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings, configure logging, wire and start the container."""
    global container

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    logger.info("Community engine starting up")
    _log_configuration(settings)

    container = build_container(settings)
    await container.start()
    logger.info("Community engine started")

    yield

    logger.info("Community engine shutting down")
    await container.stop()
    container = None
    logger.info("Community engine shutdown complete")


app = FastAPI(
    title="Community Engine",
    description="Knowledge retrieval and community experience signals",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/ready")
async def ready():
    """Readiness probe endpoint.

    Returns 503 until the container is wired, or while a configured
    database does not answer.
    """
    if container is None:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "dependencies": {"engine": "starting"}},
        )

    if container.database is None:
        database_status = "not_configured"
    elif await container.is_ready():
        database_status = "healthy"
    else:
        database_status = "unhealthy"

    body = {
        "status": "ready" if database_status != "unhealthy" else "not_ready",
        "dependencies": {"database": database_status},
    }
    if database_status == "unhealthy":
        return JSONResponse(status_code=503, content=body)
    return body


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    if container is None:
        return Response(status_code=503)
    return Response(content=container.metrics.generate(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.community.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
    )
