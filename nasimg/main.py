import asyncio
import os
from collections.abc import Callable
from contextlib import asynccontextmanager

import structlog
import structlog.contextvars
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import ValidationError

from nasimg.config import AppConfig
from nasimg.plugins import init_plugins
from nasimg.utils.directory_index import DirectoryIndexer, IndexState
from nasimg.utils.exceptions import RemoteFSError, ServiceError
from nasimg.utils.middleware import structured_logging_middleware
from nasimg.utils.remote_fs import RemoteTreeAccessor, connect_sftp
from nasimg_core.logging_config import setup_structlog
from nasimg_core.tracing import setup_tracing

JSON_LOGS_ENABLED = os.getenv("JSON_LOGS", "false").lower() in ("true", "1", "t")
setup_structlog(json_logs=JSON_LOGS_ENABLED, log_level=os.getenv("LOG_LEVEL", "INFO"))

logger = structlog.get_logger(__name__)

EXCLUDED_PLUGINS = []

AccessorFactory = Callable[[AppConfig], RemoteTreeAccessor]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage the application's lifespan.
    Connects to the remote host and builds the directory index before serving;
    closes the connection on shutdown.
    """
    try:
        settings = app.state.settings or AppConfig()
    except ValidationError as e:
        logger.critical("Failed to load configuration from environment.", error=str(e))
        raise
    app.state.settings = settings

    if settings.tracing_enabled:
        setup_tracing(service_name=settings.service_name)
    logger.info("Application starting up...", service=settings.service_name)

    try:
        accessor = app.state.accessor_factory(settings)
    except RemoteFSError as e:
        logger.critical("Failed to connect to remote filesystem on startup.", error=str(e))
        raise

    state: IndexState = app.state.index_state
    indexer = DirectoryIndexer(accessor, state)
    try:
        report = await asyncio.to_thread(indexer.build_index, settings.index_root)
        state.publish(accessor)
        if report.failures:
            logger.warning(
                "Some directories could not be indexed.",
                failed_paths=[failure.path for failure in report.failures],
            )
        logger.info(
            "Found directories with images.", directories=len(report.directories)
        )

        yield
    finally:
        logger.info("Application shutting down...")
        accessor.close()


def create_app(
    settings: AppConfig | None = None,
    accessor_factory: AccessorFactory = connect_sftp,
) -> FastAPI:
    """Build the FastAPI application; settings are read from the environment if not given."""
    app = FastAPI(
        version="1.0.0",
        title="nasimg",
        description="Random image endpoint backed by a remote SFTP tree.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.accessor_factory = accessor_factory
    # Requests racing startup see an empty, unpublished index.
    app.state.index_state = IndexState()

    FastAPIInstrumentor.instrument_app(app)

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/health"],
        registry=CollectorRegistry(),
    )
    instrumentator.instrument(app, metric_namespace="nasimg", metric_subsystem="api")
    instrumentator.expose(app, include_in_schema=False)

    @app.exception_handler(ServiceError)
    async def service_exception_handler(request: Request, exc: ServiceError):
        logger.warning(
            "Service error occurred, returning HTTP response",
            detail=exc.detail,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("An unhandled exception occurred", error=str(exc))
        context_vars = structlog.contextvars.get_contextvars()
        correlation_id = context_vars.get("correlation_id", "not-available")
        return JSONResponse(
            status_code=500,
            content={
                "error": "An internal server error occurred.",
                "error_id": correlation_id,
            },
        )

    app.middleware("http")(structured_logging_middleware)

    init_plugins(app, excluded_plugins=EXCLUDED_PLUGINS)

    @app.get("/health", tags=["Health Check"], include_in_schema=False)
    def health_check(request: Request):
        snapshot = request.app.state.index_state.get()
        return {"status": "ok", "indexed_directories": len(snapshot.directories)}

    return app


app = create_app()


def run() -> None:
    """Console entry point: load settings and serve with uvicorn."""
    try:
        settings = AppConfig()
    except ValidationError as e:
        logger.critical("Failed to load configuration from environment.", error=str(e))
        raise SystemExit(1) from e

    setup_structlog(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info(
        "Server starting", host=settings.server_host, port=settings.server_port
    )
    uvicorn.run(
        create_app(settings),
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
