"""
Model backend abstraction and implementations.

Components:
- BaseModelBackend: Abstract base class for provider backends
- OllamaBackend: Local Ollama server (/api/chat)
- OpenAICompatibleBackend: OpenAI-protocol chat completions (OpenAI, Perplexity, OpenRouter)
- BackendRegistry: Provider id -> backend lookup
- PromptBuilder: Renders feature prompts from Jinja2 templates
- exceptions: Transient/fatal backend error taxonomy
"""

from generation_layer.llm.base_client import BaseModelBackend
from generation_layer.llm.ollama_client import OllamaBackend
from generation_layer.llm.openai_client import OpenAICompatibleBackend
from generation_layer.llm.registry import BackendRegistry, build_default_registry
from generation_layer.llm.prompt_builder import PromptBuilder
from generation_layer.llm.exceptions import (
    AuthenticationError,
    BackendConnectionError,
    BackendError,
    BackendSchemaViolationError,
    BackendTimeoutError,
    FatalBackendError,
    ModelNotAvailableError,
    RateLimitError,
    TransientBackendError,
)

__all__ = [
    "BaseModelBackend",
    "OllamaBackend",
    "OpenAICompatibleBackend",
    "BackendRegistry",
    "build_default_registry",
    "PromptBuilder",
    "AuthenticationError",
    "BackendConnectionError",
    "BackendError",
    "BackendSchemaViolationError",
    "BackendTimeoutError",
    "FatalBackendError",
    "ModelNotAvailableError",
    "RateLimitError",
    "TransientBackendError",
]
