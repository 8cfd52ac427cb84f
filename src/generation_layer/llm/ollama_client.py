"""
Ollama backend implementation.

Communicates with the Ollama chat API using httpx AsyncClient. Supports:
- Plain text generation
- Streaming generation (NDJSON chunks, accumulated)
- Structured output via JSON Schema (format parameter)
- Health checks

Ollama runs locally with no API key, so it is an ambient-credential
provider: the role resolver never skips it for missing keys.
"""

import json
import time
from typing import Any, Optional

import httpx
import structlog

from generation_layer.llm.base_client import BaseModelBackend
from generation_layer.llm.exceptions import BackendError, FatalBackendError
from generation_layer.models.generation_models import (
    BackendCallParams,
    BackendResult,
    TokenUsage,
)
from generation_layer.monitoring.metrics import llm_latency_seconds, llm_tokens_total


logger = structlog.get_logger(__name__)


class OllamaBackend(BaseModelBackend):
    """
    Ollama-specific backend using POST /api/chat.

    Request payload:
    {
        "model": "qwen2.5:7b",
        "messages": [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}],
        "stream": false,
        "format": <JSON Schema>,          # generate_object only
        "options": {"temperature": 0.2, "num_predict": 4096}
    }

    Response:
    {
        "model": "qwen2.5:7b",
        "message": {"role": "assistant", "content": "..."},
        "done": true,
        "prompt_eval_count": 50,
        "eval_count": 150
    }
    """

    provider_name = "ollama"

    def __init__(
        self,
        base_url: str = "http://ollama:11434",
        timeout: int = 120,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout, connection_limits, transport)

    def _build_payload(self, params: BackendCallParams, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": params.model,
            "messages": [m.model_dump() for m in params.messages],
            "stream": stream,
            "options": {
                "temperature": params.temperature,
                "num_predict": params.max_tokens,
            },
        }
        if params.schema_:
            # Ollama expects the schema object directly as "format"
            payload["format"] = params.schema_
        return payload

    @staticmethod
    def _usage(data: dict[str, Any]) -> TokenUsage:
        return TokenUsage(
            input_tokens=data.get("prompt_eval_count") or 0,
            output_tokens=data.get("eval_count") or 0,
        )

    def _record_metrics(self, model: str, usage: TokenUsage, latency_s: float, success: bool) -> None:
        llm_latency_seconds.labels(
            provider=self.provider_name, model=model, success=str(success).lower()
        ).observe(latency_s)
        if usage.input_tokens:
            llm_tokens_total.labels(model=model, token_type="prompt").inc(usage.input_tokens)
        if usage.output_tokens:
            llm_tokens_total.labels(model=model, token_type="completion").inc(usage.output_tokens)

    async def _chat(self, params: BackendCallParams) -> tuple[str, TokenUsage, str]:
        """Send one non-streaming chat request. Returns (content, usage, model_version)."""
        start_time = time.time()
        payload = self._build_payload(params, stream=False)

        logger.info(
            "Sending chat request to Ollama",
            model=params.model,
            messages=len(params.messages),
            max_tokens=params.max_tokens,
            has_schema=bool(params.schema_),
        )

        try:
            client = await self._get_client()
            response = await client.post(self._url("/api/chat", params.base_url), json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            self._record_metrics(params.model, TokenUsage(), time.time() - start_time, False)
            raise self._map_http_error(e, params.model) from e
        except httpx.TransportError as e:
            self._record_metrics(params.model, TokenUsage(), time.time() - start_time, False)
            raise self._map_transport_error(e, params.model) from e
        except json.JSONDecodeError as e:
            raise FatalBackendError(
                "Invalid JSON response from Ollama",
                details={"parse_error": str(e), "model": params.model},
            ) from e

        content = (data.get("message") or {}).get("content", "")
        if not content:
            raise FatalBackendError(
                "Empty response from Ollama",
                details={"model": params.model, "done_reason": data.get("done_reason")},
            )

        usage = self._usage(data)
        latency_s = time.time() - start_time
        self._record_metrics(params.model, usage, latency_s, True)

        logger.info(
            "Ollama generation successful",
            model=data.get("model", params.model),
            latency_ms=int(latency_s * 1000),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return content, usage, data.get("model", params.model)

    async def generate_text(self, params: BackendCallParams) -> BackendResult:
        content, usage, model_version = await self._chat(params)
        return BackendResult(text=content, usage=usage, model_version=model_version)

    async def generate_object(self, params: BackendCallParams) -> BackendResult:
        if not params.schema_:
            raise FatalBackendError(
                "Schema is required for object generation",
                details={"model": params.model},
            )
        content, usage, model_version = await self._chat(params)
        parsed = self._decode_object(content, params.model)
        return BackendResult(parsed=parsed, usage=usage, model_version=model_version)

    async def stream_text(self, params: BackendCallParams) -> BackendResult:
        start_time = time.time()
        payload = self._build_payload(params, stream=True)
        chunks: list[str] = []
        final: dict[str, Any] = {}

        logger.info("Streaming chat request to Ollama", model=params.model)

        try:
            client = await self._get_client()
            async with client.stream(
                "POST", self._url("/api/chat", params.base_url), json=payload
            ) as response:
                if response.is_error:
                    await response.aread()
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    if data.get("error"):
                        raise FatalBackendError(
                            f"Ollama stream error: {data['error']}",
                            details={"model": params.model},
                        )
                    chunks.append((data.get("message") or {}).get("content", ""))
                    if data.get("done"):
                        final = data
        except httpx.HTTPStatusError as e:
            raise self._map_http_error(e, params.model) from e
        except httpx.TransportError as e:
            raise self._map_transport_error(e, params.model) from e
        except json.JSONDecodeError as e:
            raise FatalBackendError(
                "Invalid JSON chunk in Ollama stream",
                details={"parse_error": str(e), "model": params.model},
            ) from e

        usage = self._usage(final)
        self._record_metrics(params.model, usage, time.time() - start_time, True)
        return BackendResult(
            text="".join(chunks),
            usage=usage,
            model_version=final.get("model", params.model),
        )

    async def health_check(self) -> bool:
        """Check Ollama server health via GET /api/tags."""
        try:
            client = await self._get_client()
            response = await client.get("/api/tags", timeout=5.0)
            response.raise_for_status()
            logger.debug("Ollama health check passed")
            return True
        except (httpx.HTTPError, BackendError) as e:
            logger.warning("Ollama health check failed", error=str(e))
            return False

    async def list_models(self) -> list[str]:
        """
        List all available models via GET /api/tags.

        Returns:
            List of model names (e.g., ["qwen2.5:7b", "llama3.1:8b"])
        """
        try:
            client = await self._get_client()
            response = await client.get("/api/tags", timeout=10.0)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._map_http_error(e, "*") from e
        except httpx.TransportError as e:
            raise self._map_transport_error(e, "*") from e

        models = [m["name"] for m in response.json().get("models", [])]
        logger.debug("Listed available models", count=len(models), models=models)
        return models
