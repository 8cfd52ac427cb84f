"""
API-specific request and response models for FastAPI endpoints.

These models wrap the feature inputs/results (ParentTask, ExpandTaskResult,
ParsePrdResult) with API-specific fields.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from generation_layer.models.enums import OutputChannel
from generation_layer.models.subtask_models import GeneratedTask, ParentTask, Subtask


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpandTaskRequest(BaseModel):
    """Request for task expansion."""

    task: ParentTask = Field(description="Parent task to break down (with its existing subtasks)")
    num_subtasks: Optional[int] = Field(
        default=None,
        ge=1,
        le=50,
        description="Subtasks to generate (default: configured defaultSubtasks)",
    )
    use_research: bool = Field(default=False, description="Use the research role")
    additional_context: str = Field(default="", description="Extra instructions for the model")
    force: bool = Field(default=False, description="Replace existing subtasks instead of appending")
    channel: OutputChannel = Field(default=OutputChannel.MCP, description="Output channel (telemetry)")


class ParsePrdRequest(BaseModel):
    """Request for PRD ingestion."""

    prd_text: str = Field(min_length=1, description="Product requirements document content")
    num_tasks: Optional[int] = Field(default=None, ge=1, le=100)
    existing_tasks: list[GeneratedTask] = Field(
        default_factory=list,
        description="Tasks already in the project; new ids continue after them",
    )
    use_research: bool = False
    source_name: str = Field(default="prd.txt", description="PRD file name (recorded in metadata)")
    channel: OutputChannel = OutputChannel.MCP


class RecoverSubtasksRequest(BaseModel):
    """Request to recover a subtask batch from raw model text."""

    raw_text: str = Field(description="Raw model output")
    start_id: int = Field(default=1, ge=1, description="First id of the batch")
    expected_count: Optional[int] = Field(default=None, ge=0)


class RecoverSubtasksResponse(BaseModel):
    """Recovered subtask batch."""

    subtasks: list[Subtask]
    count: int = Field(ge=0)
    start_id: int


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(
        description="Overall health status",
        examples=["healthy", "degraded", "unhealthy"]
    )
    version: str = Field(
        description="Generation layer version",
        examples=["0.1.0"]
    )
    services: dict[str, str] = Field(
        description="Backend-specific health status",
        examples=[{"ollama": "ok", "openai": "not_configured"}]
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Health check timestamp (UTC)"
    )


class ErrorResponse(BaseModel):
    """Standard error response format."""
    model_config = ConfigDict(extra="allow")

    error: str = Field(
        description="Error code or type",
        examples=["malformed_output", "no_provider_available", "internal_error"]
    )
    message: str = Field(description="Human-readable error message")
    details: Optional[dict] = Field(default=None, description="Additional error details")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp (UTC)")
