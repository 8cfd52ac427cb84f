"""
Abstract base class for model backends.

Defines the interface every provider adapter (Ollama, OpenAI-compatible,
etc.) must implement. All three operations return the same normalized
BackendResult, so the generation runner never sees provider wire shapes.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import structlog

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
from generation_layer.models.generation_models import BackendCallParams, BackendResult


logger = structlog.get_logger(__name__)


class BaseModelBackend(ABC):
    """
    Abstract base class for model backends.

    Responsibilities:
    - Send generation requests to the provider
    - Normalize responses into BackendResult (text | parsed, usage)
    - Map transport and HTTP failures onto the backend error taxonomy

    Does NOT handle:
    - Retries (that's the retry controller's job)
    - Choosing a model or provider (that's the role resolver's job)
    - Recovering malformed JSON (that's the recovery parser's job)
    """

    provider_name: str = "base"

    def __init__(
        self,
        base_url: str,
        timeout: int = 120,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize base backend.

        Args:
            base_url: Default provider URL (a per-call base_url overrides it)
            timeout: Request timeout in seconds
            connection_limits: httpx connection pool limits
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._connection_limits = connection_limits or httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Initialized model backend",
            backend_class=self.__class__.__name__,
            base_url=self.base_url,
            timeout=timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the pooled async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                transport=self._transport,
                follow_redirects=True,
            )
            logger.debug("Created new httpx AsyncClient", backend=self.provider_name)
        return self._client

    def _url(self, path: str, base_url: Optional[str]) -> str:
        """Absolute URL when a per-call base URL is given, else a path on the pooled client."""
        if base_url:
            return f"{base_url.rstrip('/')}{path}"
        return path

    @abstractmethod
    async def generate_text(self, params: BackendCallParams) -> BackendResult:
        """
        Generate a completion and return it as text.

        Raises:
            TransientBackendError: Retryable provider/network failure
            FatalBackendError: Non-retryable failure
        """

    @abstractmethod
    async def stream_text(self, params: BackendCallParams) -> BackendResult:
        """
        Generate a completion through the provider's streaming API.

        The chunks are accumulated; the result carries the full text and the
        usage reported by the final chunk.
        """

    @abstractmethod
    async def generate_object(self, params: BackendCallParams) -> BackendResult:
        """
        Generate a JSON object constrained by params.schema.

        Returns a BackendResult whose `parsed` holds the decoded object.

        Raises:
            BackendSchemaViolationError: Provider returned non-JSON content
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Lightweight reachability check.

        Must NOT raise - return False on error.
        """

    async def close(self) -> None:
        """Close pooled connections."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed backend client", backend=self.provider_name)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _decode_object(self, content: str, model: str) -> dict[str, Any]:
        """Decode a structured-output payload into a dict."""
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise BackendSchemaViolationError(
                f"Structured output from {self.provider_name} is not valid JSON: {e.msg}",
                details={"model": model, "content_snippet": content[:500]},
            ) from e
        if not isinstance(parsed, dict):
            raise BackendSchemaViolationError(
                f"Structured output from {self.provider_name} is not a JSON object "
                f"(got {type(parsed).__name__})",
                details={"model": model},
            )
        return parsed

    def _map_http_error(self, exc: httpx.HTTPStatusError, model: str) -> BackendError:
        """Translate an HTTP error status into the backend error taxonomy."""
        status_code = exc.response.status_code
        error_text = exc.response.text[:500]
        details = {"model": model, "provider": self.provider_name, "error": error_text}

        logger.warning(
            "Backend HTTP error",
            backend=self.provider_name,
            status_code=status_code,
            model=model,
        )

        if status_code == 429:
            return RateLimitError(f"Rate limit exceeded for {model}", status=status_code, details=details)
        if status_code in (401, 403):
            return AuthenticationError(
                f"Authentication rejected by {self.provider_name}", status=status_code, details=details
            )
        if status_code == 404:
            return ModelNotAvailableError(f"Model not found: {model}", status=status_code, details=details)
        if status_code >= 500:
            return TransientBackendError(
                f"{self.provider_name} server error", status=status_code, details=details
            )
        return FatalBackendError(
            f"{self.provider_name} rejected the request", status=status_code, details=details
        )

    def _map_transport_error(self, exc: httpx.TransportError, model: str) -> TransientBackendError:
        """Translate timeouts and network failures."""
        if isinstance(exc, httpx.TimeoutException):
            return BackendTimeoutError(
                f"Request timeout after {self.timeout}s",
                details={"model": model, "provider": self.provider_name},
            )
        return BackendConnectionError(
            f"Network error: {exc}",
            details={"model": model, "provider": self.provider_name, "error_type": type(exc).__name__},
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"base_url={self.base_url}, "
            f"timeout={self.timeout}s)"
        )
