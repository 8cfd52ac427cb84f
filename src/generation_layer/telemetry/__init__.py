"""Usage telemetry: cost computation, non-blocking emission, append-only sinks."""

from generation_layer.telemetry.emitter import TelemetryEmitter
from generation_layer.telemetry.pricing import ModelCost, compute_cost, get_model_cost
from generation_layer.telemetry.sinks import (
    InMemoryUsageSink,
    RedisClient,
    RedisUsageSink,
    UsageSink,
)

__all__ = [
    "InMemoryUsageSink",
    "ModelCost",
    "RedisClient",
    "RedisUsageSink",
    "TelemetryEmitter",
    "UsageSink",
    "compute_cost",
    "get_model_cost",
]
