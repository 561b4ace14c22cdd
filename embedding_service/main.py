"""Embedding service main application."""

import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .api.routes import router as embeddings_router
from .api.tools import router as tools_router
from .encoders.embedding_manager import EmbeddingManager
from .runtime.metrics import MetricsCollector, get_metrics_collector
from libs.common.config import EmbeddingConfig
from libs.common.logging import configure_logging

logger = structlog.get_logger("embedding_service")

SERVICE_NAME = "embedding-service"
VERSION = "0.1.0"


def _route_label(request: Request) -> str:
    """Route template for metric labels, so path parameters do not create series."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def create_app(
    config: Optional[EmbeddingConfig] = None,
    embedding_manager: Optional[EmbeddingManager] = None,
    metrics_collector: Optional[MetricsCollector] = None
) -> FastAPI:
    """Build the FastAPI application.

    Parameters
    - config: settings; read from the environment at startup when omitted
    - embedding_manager: prebuilt manager (tests); built from config when omitted
    - metrics_collector: collector; the process-wide one when omitted

    A provider configuration error aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        app_config = config or EmbeddingConfig()
        configure_logging(SERVICE_NAME, app_config.ml_log_level, app_config.ml_log_format)
        app.state.config = app_config
        app.state.startup_time = time.time()
        app.state.metrics_collector = metrics_collector or get_metrics_collector(SERVICE_NAME)

        logger.info("Starting embedding service")

        manager = embedding_manager or EmbeddingManager.from_config(
            app_config,
            metrics_collector=app.state.metrics_collector
        )
        app.state.embedding_manager = manager
        await manager.initialize()

        logger.info("Embedding service started successfully")

        yield

        # Shutdown
        logger.info("Shutting down embedding service")
        await manager.cleanup()
        logger.info("Embedding service shutdown complete")

    app = FastAPI(
        title="Embedding Service",
        description="Contract chunk embedding with provider failover, caching and batch processing",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(embeddings_router, prefix="/api")
    app.include_router(tools_router, prefix="/api")

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to responses."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests."""
        start_time = time.time()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            logger.error("Unhandled request error", path=request.url.path, error=str(e))
            status_code = 500
            response = JSONResponse(
                status_code=500,
                content={"error": "Internal server error"}
            )

        duration = time.time() - start_time

        collector = getattr(request.app.state, "metrics_collector", None)
        if collector is not None:
            collector.record_http_request(
                method=request.method,
                endpoint=_route_label(request),
                status=status_code,
                duration=duration
            )

        return response

    @app.get("/metrics")
    async def metrics(request: Request):
        """Prometheus metrics endpoint."""
        collector = getattr(request.app.state, "metrics_collector", None)
        if collector is None:
            return Response(content="# No metrics available\n", media_type="text/plain")
        return Response(content=collector.get_metrics(), media_type="text/plain")

    @app.get("/live")
    async def liveness(request: Request):
        """Liveness probe. Returns quickly if process is responsive."""
        return {
            "status": "alive",
            "service": SERVICE_NAME,
            "uptime_seconds": time.time() - getattr(request.app.state, "startup_time", time.time())
        }

    @app.get("/ready")
    async def readiness(request: Request):
        """Readiness probe. Validates core dependencies are available."""
        try:
            manager: Optional[EmbeddingManager] = getattr(request.app.state, "embedding_manager", None)
            if manager is None:
                raise RuntimeError("Embedding manager not initialized")

            if not await manager.health_check():
                raise RuntimeError("Embedding manager reports unhealthy state")

            return {
                "status": "ready",
                "service": SERVICE_NAME,
                "providers": manager.describe_providers(),
                "cache": manager.cache.get_stats()
            }
        except Exception as exc:
            logger.error("Readiness probe failed", error=str(exc))
            return JSONResponse(
                status_code=503,
                content={
                    "status": "not_ready",
                    "service": SERVICE_NAME,
                    "error": str(exc)
                }
            )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "status": "running",
            "endpoints": {
                "generate": "/api/embeddings/generate",
                "generate_single": "/api/embeddings/generate-single",
                "batch_process": "/api/embeddings/batch-process/{document_id}",
                "status": "/api/embeddings/status/{document_id}",
                "health": "/api/embeddings/health",
                "tools": "/api/tools",
                "metrics": "/metrics"
            },
            "probes": {
                "live": "/live",
                "ready": "/ready"
            }
        }

    return app


app = create_app()


def main() -> None:
    """Run the service with uvicorn."""
    config = EmbeddingConfig()
    uvicorn.run(
        create_app(config),
        host="0.0.0.0",
        port=config.ml_embedding_port,
        log_level=config.ml_log_level.lower()
    )


if __name__ == "__main__":
    main()
