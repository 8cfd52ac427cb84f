"""
API routes for task expansion, PRD ingestion and batch recovery.

Generation endpoints await the runner directly; a client disconnect
cancels the request task and with it any pending backoff wait.
"""

import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram

from generation_layer import __version__
from generation_layer.api.dependencies import (
    get_backend_registry,
    get_prompt_builder,
    get_runner,
    reload_config_snapshot,
)
from generation_layer.api.models import (
    ErrorResponse,
    ExpandTaskRequest,
    HealthResponse,
    ParsePrdRequest,
    RecoverSubtasksRequest,
    RecoverSubtasksResponse,
)
from generation_layer.features.expand_task import ExpandTaskResult, expand_task
from generation_layer.features.parse_prd import ParsePrdResult, parse_prd
from generation_layer.generation.runner import UnifiedGenerationRunner
from generation_layer.llm.prompt_builder import PromptBuilder
from generation_layer.llm.registry import BackendRegistry
from generation_layer.recovery.parser import recover_batch

logger = structlog.get_logger(__name__)

# Prometheus metrics
api_requests_total = Counter(
    "generation_api_requests_total",
    "Total generation API requests",
    ["endpoint", "status"]
)

api_duration_seconds = Histogram(
    "generation_api_duration_seconds",
    "Generation API request duration in seconds",
    ["endpoint"]
)

router = APIRouter()


@router.post(
    "/tasks/expand",
    response_model=ExpandTaskResult,
    status_code=status.HTTP_200_OK,
    summary="Expand a task into subtasks",
    responses={
        200: {"description": "Subtasks generated"},
        422: {"model": ErrorResponse, "description": "Model output could not be recovered"},
        503: {"model": ErrorResponse, "description": "No provider produced a result"},
    },
)
async def expand_task_endpoint(
    request: ExpandTaskRequest,
    runner: UnifiedGenerationRunner = Depends(get_runner),
    prompt_builder: PromptBuilder = Depends(get_prompt_builder),
) -> ExpandTaskResult:
    start_time = time.time()
    try:
        result = await expand_task(
            runner,
            prompt_builder,
            request.task,
            num_subtasks=request.num_subtasks,
            use_research=request.use_research,
            additional_context=request.additional_context,
            force=request.force,
            channel=request.channel,
        )
    except Exception as exc:
        api_requests_total.labels(endpoint="expand", status="error").inc()
        logger.error("Task expansion failed", task_id=request.task.id, error_type=type(exc).__name__)
        # Re-raise for exception handlers
        raise

    api_requests_total.labels(endpoint="expand", status="success").inc()
    api_duration_seconds.labels(endpoint="expand").observe(time.time() - start_time)
    return result


@router.post(
    "/prd/parse",
    response_model=ParsePrdResult,
    summary="Generate top-level tasks from a PRD",
    responses={
        200: {"description": "Tasks generated"},
        422: {"model": ErrorResponse, "description": "Generated object unusable"},
        503: {"model": ErrorResponse, "description": "No provider produced a result"},
    },
)
async def parse_prd_endpoint(
    request: ParsePrdRequest,
    runner: UnifiedGenerationRunner = Depends(get_runner),
    prompt_builder: PromptBuilder = Depends(get_prompt_builder),
) -> ParsePrdResult:
    start_time = time.time()
    try:
        result = await parse_prd(
            runner,
            prompt_builder,
            request.prd_text,
            num_tasks=request.num_tasks,
            existing_tasks=request.existing_tasks,
            use_research=request.use_research,
            source_name=request.source_name,
            channel=request.channel,
        )
    except Exception as exc:
        api_requests_total.labels(endpoint="prd", status="error").inc()
        logger.error("PRD parsing failed", source=request.source_name, error_type=type(exc).__name__)
        raise

    api_requests_total.labels(endpoint="prd", status="success").inc()
    api_duration_seconds.labels(endpoint="prd").observe(time.time() - start_time)
    return result


@router.post(
    "/subtasks/recover",
    response_model=RecoverSubtasksResponse,
    summary="Recover a subtask batch from raw model text",
    responses={422: {"model": ErrorResponse, "description": "Text could not be recovered"}},
)
async def recover_subtasks_endpoint(request: RecoverSubtasksRequest) -> RecoverSubtasksResponse:
    batch = recover_batch(request.raw_text, start_id=request.start_id, expected_count=request.expected_count)
    api_requests_total.labels(endpoint="recover", status="success").inc()
    return RecoverSubtasksResponse(subtasks=batch.subtasks, count=len(batch), start_id=batch.start_id)


@router.post("/config/reload", summary="Reload the configuration snapshot")
async def reload_config() -> dict:
    snapshot = reload_config_snapshot()
    return {
        "main": f"{snapshot.main.provider}/{snapshot.main.model_id}",
        "research": f"{snapshot.research.provider}/{snapshot.research.model_id}",
        "fallback": (
            f"{snapshot.fallback.provider}/{snapshot.fallback.model_id}"
            if snapshot.fallback.is_configured
            else None
        ),
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={
        200: {"description": "At least one backend healthy"},
        503: {"model": HealthResponse, "description": "No backend reachable"},
    },
)
async def health_check(
    registry: BackendRegistry = Depends(get_backend_registry),
    runner: UnifiedGenerationRunner = Depends(get_runner),
):
    services: dict[str, str] = {}
    for provider in registry.providers:
        if not runner.credentials.is_credentialed(provider):
            services[provider] = "not_configured"
            continue
        backend = registry.get(provider)
        services[provider] = "ok" if await backend.health_check() else "unreachable"

    reachable = [p for p, s in services.items() if s == "ok"]
    if reachable and len(reachable) == len([s for s in services.values() if s != "not_configured"]):
        health_status, status_code = "healthy", status.HTTP_200_OK
    elif reachable:
        health_status, status_code = "degraded", status.HTTP_200_OK
    else:
        health_status, status_code = "unhealthy", status.HTTP_503_SERVICE_UNAVAILABLE

    logger.info("Health check", status=health_status, services=services)

    response = HealthResponse(
        status=health_status,
        version=__version__,
        services=services,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
