"""
FastAPI dependency injection for the generation layer.

Provides singleton instances of expensive resources (backend registry,
prompt builder, telemetry emitter) and a per-request runner bound to the
current configuration snapshot.
"""

from functools import lru_cache

import structlog
from fastapi import Depends

from generation_layer.config import ConfigSnapshot, Settings, load_config_snapshot, settings
from generation_layer.generation.runner import UnifiedGenerationRunner
from generation_layer.llm.prompt_builder import PromptBuilder
from generation_layer.llm.registry import BackendRegistry, build_default_registry
from generation_layer.telemetry.emitter import TelemetryEmitter
from generation_layer.telemetry.sinks import InMemoryUsageSink, RedisUsageSink, UsageSink

logger = structlog.get_logger(__name__)


@lru_cache()
def get_settings() -> Settings:
    """
    Get settings singleton.

    Returns:
        Settings instance
    """
    return settings


@lru_cache()
def get_config_snapshot() -> ConfigSnapshot:
    """
    Current configuration snapshot.

    Cached until reload_config_snapshot() is called.
    """
    return load_config_snapshot(get_settings())


def reload_config_snapshot() -> ConfigSnapshot:
    """Drop the cached snapshot and load a fresh one."""
    get_config_snapshot.cache_clear()
    snapshot = get_config_snapshot()
    logger.info("Configuration snapshot reloaded")
    return snapshot


@lru_cache()
def get_backend_registry() -> BackendRegistry:
    """
    Get singleton backend registry.

    Backends keep pooled httpx clients, so they live for the whole process.
    """
    return build_default_registry(get_settings(), get_config_snapshot())


@lru_cache()
def get_prompt_builder() -> PromptBuilder:
    """
    Get singleton prompt builder.

    Loads Jinja2 templates once and reuses them across requests.
    """
    return PromptBuilder()


@lru_cache()
def get_telemetry_emitter() -> TelemetryEmitter:
    """
    Get singleton telemetry emitter.

    Writes to Redis when telemetry is enabled, otherwise keeps records in memory.
    """
    current = get_settings()
    sink: UsageSink
    if current.TELEMETRY_ENABLED:
        sink = RedisUsageSink.from_settings(current)
    else:
        sink = InMemoryUsageSink()
    return TelemetryEmitter(sink, maxsize=current.TELEMETRY_QUEUE_SIZE)


def get_runner(
    snapshot: ConfigSnapshot = Depends(get_config_snapshot),
    registry: BackendRegistry = Depends(get_backend_registry),
    emitter: TelemetryEmitter = Depends(get_telemetry_emitter),
    settings: Settings = Depends(get_settings),
) -> UnifiedGenerationRunner:
    """
    Create a runner bound to the current snapshot.

    Note: the runner is NOT cached because it's lightweight and stateless.
    All heavy resources (registry, emitter) are singletons.
    """
    return UnifiedGenerationRunner(
        snapshot,
        registry,
        emitter=emitter,
        max_retries=settings.MAX_RETRIES,
        base_delay=settings.RETRY_BASE_DELAY,
    )
