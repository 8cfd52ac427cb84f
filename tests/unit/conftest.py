"""Unit test fixtures (mocks and stubs).

Provides mock objects for testing without external dependencies.
"""

from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from generation_layer.llm.base_client import BaseModelBackend
from generation_layer.llm.registry import BackendRegistry
from generation_layer.models.generation_models import BackendResult, TokenUsage
from generation_layer.telemetry.emitter import TelemetryEmitter
from generation_layer.telemetry.sinks import InMemoryUsageSink


def make_backend(
    provider: str = "ollama",
    text: str = "generated text",
    parsed: Optional[dict] = None,
    input_tokens: int = 100,
    output_tokens: int = 50,
) -> MagicMock:
    """Mock backend whose three operations return a fixed BackendResult."""
    result = BackendResult(
        text=text if parsed is None else None,
        parsed=parsed,
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        model_version="test-model",
    )
    backend = MagicMock(spec=BaseModelBackend)
    backend.provider_name = provider
    backend.generate_text = AsyncMock(return_value=result)
    backend.stream_text = AsyncMock(return_value=result)
    backend.generate_object = AsyncMock(return_value=result)
    backend.health_check = AsyncMock(return_value=True)
    backend.close = AsyncMock()
    return backend


@pytest.fixture
def backend_factory():
    """Factory fixture exposing make_backend to tests."""
    return make_backend


@pytest.fixture
def mock_backend() -> MagicMock:
    """Mock Ollama backend returning plain text."""
    return make_backend()


@pytest.fixture
def registry(mock_backend: MagicMock) -> BackendRegistry:
    """Registry holding the mock Ollama backend."""
    return BackendRegistry({"ollama": mock_backend})


@pytest.fixture
def recorded_sleep():
    """Replacement for the backoff sleep that records requested delays."""
    delays: list[float] = []

    async def _sleep(delay: float, token=None) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def memory_sink() -> InMemoryUsageSink:
    return InMemoryUsageSink()


@pytest.fixture
def emitter(memory_sink: InMemoryUsageSink) -> TelemetryEmitter:
    return TelemetryEmitter(memory_sink, maxsize=16)


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.rpush = AsyncMock(return_value=1)
    mock.lrange = AsyncMock(return_value=[])
    mock.llen = AsyncMock(return_value=0)
    return mock
