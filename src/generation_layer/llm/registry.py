"""
Provider id -> backend lookup.

The runner asks the registry for the backend of each attempt's provider;
a provider with no registered backend is skipped, not an error.
"""

from typing import Optional

import httpx
import structlog

from generation_layer.config import ConfigSnapshot, Settings
from generation_layer.llm.base_client import BaseModelBackend
from generation_layer.llm.ollama_client import OllamaBackend
from generation_layer.llm.openai_client import OpenAICompatibleBackend

logger = structlog.get_logger(__name__)


class BackendRegistry:
    """Mutable map of provider ids (lower case) to backend instances."""

    def __init__(self, backends: Optional[dict[str, BaseModelBackend]] = None):
        self._backends: dict[str, BaseModelBackend] = {}
        for provider, backend in (backends or {}).items():
            self.register(provider, backend)

    def register(self, provider: str, backend: BaseModelBackend) -> None:
        self._backends[provider.lower()] = backend
        logger.debug("Registered backend", provider=provider.lower(), backend=repr(backend))

    def get(self, provider: str) -> Optional[BaseModelBackend]:
        return self._backends.get(provider.lower())

    def __contains__(self, provider: str) -> bool:
        return provider.lower() in self._backends

    @property
    def providers(self) -> list[str]:
        return sorted(self._backends)

    async def health(self) -> dict[str, bool]:
        """Run every backend's health check."""
        return {provider: await backend.health_check() for provider, backend in self._backends.items()}

    async def close(self) -> None:
        for backend in self._backends.values():
            await backend.close()


def build_default_registry(settings: Settings, snapshot: ConfigSnapshot) -> BackendRegistry:
    """
    Create the standard backends from settings.

    Hosted providers get the API key found in the snapshot; a missing key
    still registers the backend (the credential check skips it at run time).
    """
    limits = httpx.Limits(max_keepalive_connections=5, max_connections=10, keepalive_expiry=30.0)
    registry = BackendRegistry()
    registry.register(
        "ollama",
        OllamaBackend(
            base_url=settings.OLLAMA_BASE_URL,
            timeout=settings.OLLAMA_TIMEOUT,
            connection_limits=limits,
        ),
    )

    hosted = {
        "openai": settings.OPENAI_BASE_URL,
        "perplexity": settings.PERPLEXITY_BASE_URL,
        "openrouter": settings.OPENROUTER_BASE_URL,
    }
    for provider, base_url in hosted.items():
        registry.register(
            provider,
            OpenAICompatibleBackend(
                provider_name=provider,
                base_url=base_url,
                api_key=snapshot.api_keys.get(f"{provider.upper()}_API_KEY"),
                timeout=settings.HTTP_TIMEOUT,
                connection_limits=limits,
            ),
        )

    logger.info("Backend registry ready", providers=registry.providers)
    return registry
