"""
Usage telemetry record emitted once per successful generation.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UsageTelemetry(BaseModel):
    """
    Token usage and cost of one successful generation call.

    Records are append-only: they are pushed to the usage sink and never
    updated afterwards.
    """
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str
    command_name: str
    model_used: str
    provider_name: str
    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    total_cost: float = Field(ge=0.0, description="Cost in `currency` for this call")
    currency: str = "USD"
    role: Optional[str] = None
