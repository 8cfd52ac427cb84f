"""
FastAPI exception handlers for structured error responses.

Maps domain exceptions to appropriate HTTP status codes and formats.
"""

from datetime import datetime, timezone

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

from generation_layer.config import ConfigurationError
from generation_layer.generation.exceptions import GenerationCancelled, NoProviderAvailable
from generation_layer.recovery.exceptions import MalformedOutput, SubtaskSchemaError

logger = structlog.get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def malformed_output_handler(request: Request, exc: MalformedOutput) -> JSONResponse:
    """
    Handle unrecoverable model output.

    Maps to 422 Unprocessable Entity.
    """
    logger.warning(
        "Malformed model output",
        error_type=type(exc).__name__,
        details=exc.details,
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "schema_violation" if isinstance(exc, SubtaskSchemaError) else "malformed_output",
            "message": exc.message,
            "details": exc.details,
            "preview": exc.preview,
            "timestamp": _timestamp(),
        },
    )


async def no_provider_handler(request: Request, exc: NoProviderAvailable) -> JSONResponse:
    """
    Handle runs where every attempt was skipped or failed.

    Maps to 503 Service Unavailable (temporary failure).
    """
    logger.error("No provider available", role=exc.role, message=str(exc))

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "no_provider_available",
            "message": str(exc),
            "details": {"role": exc.role},
            "timestamp": _timestamp(),
        },
    )


async def cancelled_handler(request: Request, exc: GenerationCancelled) -> JSONResponse:
    """Handle cancelled generations. Maps to 503."""
    logger.info("Generation cancelled", message=str(exc))

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "generation_cancelled",
            "message": str(exc),
            "timestamp": _timestamp(),
        },
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Handle invalid role settings from the environment. Maps to 500."""
    logger.error("Configuration error", message=str(exc))

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "configuration_error",
            "message": str(exc),
            "timestamp": _timestamp(),
        },
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Handle invalid feature arguments. Maps to 400."""
    logger.warning("Invalid request", message=str(exc))

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "invalid_request",
            "message": str(exc),
            "timestamp": _timestamp(),
        },
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected errors.

    Maps to 500 Internal Server Error.
    """
    logger.exception("Unexpected error", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "timestamp": _timestamp(),
        },
    )


# Exception handler mapping for FastAPI app.add_exception_handler()
EXCEPTION_HANDLERS = {
    MalformedOutput: malformed_output_handler,
    SubtaskSchemaError: malformed_output_handler,
    NoProviderAvailable: no_provider_handler,
    GenerationCancelled: cancelled_handler,
    ConfigurationError: configuration_error_handler,
    ValueError: value_error_handler,
    Exception: generic_error_handler,
}
