"""
Enumerations shared across the generation layer.
"""

from enum import Enum


class Role(str, Enum):
    """Configured model role servicing a request."""

    MAIN = "main"
    RESEARCH = "research"
    FALLBACK = "fallback"


class ServiceKind(str, Enum):
    """Backend operation invoked by the unified runner."""

    GENERATE_TEXT = "generate_text"
    STREAM_TEXT = "stream_text"
    GENERATE_OBJECT = "generate_object"


class OutputChannel(str, Enum):
    """
    Channel the calling command reports through.

    Only CLI emits usage telemetry from the runner; MCP receives usage data
    through its own response path.
    """

    CLI = "cli"
    MCP = "mcp"


class SubtaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
