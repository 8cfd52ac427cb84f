"""
Request/response models for the generation runner and model backends.

Backends receive a provider-agnostic BackendCallParams and must return a
normalized BackendResult, whatever the provider's wire shape is. The runner
wraps the winning BackendResult into a GenerationResult for callers.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from generation_layer.models.enums import OutputChannel, Role
from generation_layer.models.telemetry_models import UsageTelemetry


class ChatMessage(BaseModel):
    """One chat message sent to a backend."""
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class TokenUsage(BaseModel):
    """Normalized token counts reported by a backend."""
    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerationRequest(BaseModel):
    """
    One logical generation call.

    Created per call and discarded once the result returns.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    role: Role = Field(default=Role.MAIN, description="Requested role (main or research)")
    prompt: str = Field(..., description="User prompt")
    system_prompt: Optional[str] = Field(default=None, description="Optional system prompt")
    schema_: Optional[dict[str, Any]] = Field(
        default=None,
        alias="schema",
        description="JSON Schema for generate_object",
    )
    object_name: Optional[str] = Field(default=None, description="Name for the generated object/tool")
    command_name: str = Field(default="unknown", description="Invoking command (telemetry)")
    output_channel: OutputChannel = Field(default=OutputChannel.CLI)


class BackendCallParams(BaseModel):
    """Provider-agnostic parameters for a single backend call."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    model: str
    messages: list[ChatMessage]
    max_tokens: int = Field(default=4096, ge=1)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")
    object_name: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = Field(default=None, repr=False)


class BackendResult(BaseModel):
    """Normalized backend response: text or parsed object, plus usage."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    text: Optional[str] = None
    parsed: Optional[dict[str, Any]] = None
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model_version: Optional[str] = None


class AttemptSpec(BaseModel):
    """One (provider, model) pair tried for a request."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    role: Role
    provider: str = ""
    model_id: str = ""
    base_url: Optional[str] = None
    max_tokens: int = 4096
    temperature: float = 0.2

    @property
    def is_resolved(self) -> bool:
        return bool(self.provider) and bool(self.model_id)


class GenerationResult(BaseModel):
    """Result handed back to callers of the runner."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    text: Optional[str] = None
    parsed: Optional[dict[str, Any]] = None
    usage: TokenUsage
    provider: str
    model_id: str
    role: Role
    telemetry: Optional[UsageTelemetry] = None

    @property
    def main_result(self) -> Any:
        """Parsed object when present, otherwise the raw text."""
        return self.parsed if self.parsed is not None else self.text
