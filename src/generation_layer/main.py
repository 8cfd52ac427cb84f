"""
FastAPI application entry point for the Structured Generation Layer.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from generation_layer import __version__
from generation_layer.api.dependencies import (
    get_backend_registry,
    get_config_snapshot,
    get_telemetry_emitter,
)
from generation_layer.api.error_handlers import EXCEPTION_HANDLERS
from generation_layer.api.routes import router
from generation_layer.config import settings
from generation_layer.logging_config import configure_logging

# Configure structured logging before any other imports
configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)
logger = structlog.get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Structured task generation with role fallback, retry and output recovery",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (configure for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

app.include_router(router)


@app.on_event("startup")
async def startup():
    """Application startup - load configuration and check backends."""
    snapshot = get_config_snapshot()
    logger.info(
        "Application startup",
        version=__version__,
        environment=settings.ENVIRONMENT,
        main=f"{snapshot.main.provider}/{snapshot.main.model_id}",
        research=f"{snapshot.research.provider}/{snapshot.research.model_id}",
        fallback_configured=snapshot.fallback.is_configured,
    )

    registry = get_backend_registry()
    ollama = registry.get("ollama")
    if ollama is not None and await ollama.health_check():
        logger.info("Ollama connection successful")
    else:
        logger.warning("Ollama not reachable at startup", base_url=settings.OLLAMA_BASE_URL)

    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown():
    """Application shutdown - drain telemetry and close backend pools."""
    logger.info("Application shutdown")
    await get_telemetry_emitter().aclose()
    await get_backend_registry().close()
    logger.info("Application shutdown complete")


# Prometheus metrics instrumentation
if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    """Root endpoint with API documentation links."""
    return {
        "service": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics" if settings.PROMETHEUS_ENABLED else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "generation_layer.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Only for development
    )
