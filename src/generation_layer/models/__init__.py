"""
Pydantic data models for the Structured Generation Layer.

Includes:
- Enums (Role, ServiceKind, OutputChannel, SubtaskStatus, TaskPriority)
- Generation models (GenerationRequest, BackendCallParams, BackendResult, GenerationResult)
- Subtask models (Subtask, SubtaskBatch, ParentTask, GeneratedTask)
- Telemetry models (UsageTelemetry)
"""

from generation_layer.models.enums import (
    OutputChannel,
    Role,
    ServiceKind,
    SubtaskStatus,
    TaskPriority,
)
from generation_layer.models.telemetry_models import UsageTelemetry
from generation_layer.models.generation_models import (
    AttemptSpec,
    BackendCallParams,
    BackendResult,
    ChatMessage,
    GenerationRequest,
    GenerationResult,
    TokenUsage,
)
from generation_layer.models.subtask_models import (
    GeneratedTask,
    ParentTask,
    Subtask,
    SubtaskBatch,
)

__all__ = [
    # Enums
    "OutputChannel",
    "Role",
    "ServiceKind",
    "SubtaskStatus",
    "TaskPriority",
    # Generation models
    "AttemptSpec",
    "BackendCallParams",
    "BackendResult",
    "ChatMessage",
    "GenerationRequest",
    "GenerationResult",
    "TokenUsage",
    # Subtask models
    "GeneratedTask",
    "ParentTask",
    "Subtask",
    "SubtaskBatch",
    # Telemetry
    "UsageTelemetry",
]
