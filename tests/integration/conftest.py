"""Integration test fixtures (service checks and prerequisites).

Provides fixtures for checking if external services are available.
Live-service tests are skipped if required services are not running.
"""

import httpx
import pytest
import pytest_asyncio
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from generation_layer.llm.ollama_client import OllamaBackend


@pytest.fixture(scope="session")
def check_ollama():
    """Check if Ollama is available at localhost:11434.

    Skips tests if Ollama is not reachable.
    """
    try:
        response = httpx.get("http://localhost:11434/api/tags", timeout=5)
        if response.status_code != 200:
            pytest.skip("Ollama not available (non-200 status)")
    except httpx.HTTPError as e:
        pytest.skip(f"Ollama not available: {e}")


@pytest_asyncio.fixture
async def real_ollama_backend(check_ollama):
    """Real OllamaBackend instance for integration tests."""
    backend = OllamaBackend(base_url="http://localhost:11434", timeout=60)
    yield backend
    await backend.close()


@pytest_asyncio.fixture
async def real_async_redis_client():
    """Real AsyncRedis client for integration tests.

    Uses database 15 (test database). Skips if Redis is not reachable.
    """
    client = AsyncRedis.from_url("redis://localhost:6379/15", decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        await client.aclose()
        pytest.skip(f"Redis not available: {e}")

    # Clear test database before test
    await client.flushdb()

    yield client

    # Clear test database after test
    await client.flushdb()
    await client.aclose()


@pytest.fixture
def integration_settings(test_settings):
    """Settings for integration tests with real services.

    Points to localhost services on standard ports.
    """
    test_settings.OLLAMA_BASE_URL = "http://localhost:11434"
    test_settings.REDIS_URL = "redis://localhost:6379/15"  # Test database
    test_settings.PROMETHEUS_ENABLED = False

    return test_settings
