"""
OpenAI-compatible backend implementation.

Covers every provider that speaks the OpenAI chat-completions protocol
(OpenAI itself, Perplexity, OpenRouter, self-hosted gateways). The
provider id and API key are given per instance, so the registry can
create one backend per provider over the same code.
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


class OpenAICompatibleBackend(BaseModelBackend):
    """
    Backend for POST {base_url}/chat/completions.

    Structured output uses the json_schema response format:
    {
        "response_format": {
            "type": "json_schema",
            "json_schema": {"name": "tasks_data", "schema": {...}}
        }
    }

    Streaming reads server-sent events ("data: {...}" lines, terminated by
    "data: [DONE]") and asks for a final usage chunk via stream_options.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: int = 120,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider_name = provider_name
        super().__init__(base_url, timeout, connection_limits, transport)
        self._api_key = api_key

    def _headers(self, api_key: Optional[str] = None) -> dict[str, str]:
        """Request headers. A per-call key from the current snapshot wins over the built-in one."""
        headers = {"Content-Type": "application/json"}
        key = api_key or self._api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"
        return headers

    def _build_payload(self, params: BackendCallParams, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": params.model,
            "messages": [m.model_dump() for m in params.messages],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        if params.schema_:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": params.object_name or "generated_object",
                    "schema": params.schema_,
                },
            }
        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
        return payload

    @staticmethod
    def _usage(data: dict[str, Any]) -> TokenUsage:
        usage = data.get("usage") or {}
        return TokenUsage(
            input_tokens=usage.get("prompt_tokens") or 0,
            output_tokens=usage.get("completion_tokens") or 0,
        )

    def _record_metrics(self, model: str, usage: TokenUsage, latency_s: float, success: bool) -> None:
        llm_latency_seconds.labels(
            provider=self.provider_name, model=model, success=str(success).lower()
        ).observe(latency_s)
        if usage.input_tokens:
            llm_tokens_total.labels(model=model, token_type="prompt").inc(usage.input_tokens)
        if usage.output_tokens:
            llm_tokens_total.labels(model=model, token_type="completion").inc(usage.output_tokens)

    async def _complete(self, params: BackendCallParams) -> tuple[str, TokenUsage, str]:
        start_time = time.time()
        payload = self._build_payload(params, stream=False)

        logger.info(
            "Sending chat completion request",
            provider=self.provider_name,
            model=params.model,
            has_schema=bool(params.schema_),
        )

        try:
            client = await self._get_client()
            response = await client.post(
                self._url("/chat/completions", params.base_url),
                json=payload,
                headers=self._headers(params.api_key),
            )
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
                f"Invalid JSON response from {self.provider_name}",
                details={"parse_error": str(e), "model": params.model},
            ) from e

        choices = data.get("choices") or []
        content = ((choices[0].get("message") or {}).get("content") if choices else None) or ""
        if not content:
            raise FatalBackendError(
                f"Empty response from {self.provider_name}",
                details={"model": params.model},
            )

        usage = self._usage(data)
        latency_s = time.time() - start_time
        self._record_metrics(params.model, usage, latency_s, True)
        logger.info(
            "Chat completion successful",
            provider=self.provider_name,
            model=data.get("model", params.model),
            latency_ms=int(latency_s * 1000),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return content, usage, data.get("model", params.model)

    async def generate_text(self, params: BackendCallParams) -> BackendResult:
        content, usage, model_version = await self._complete(params)
        return BackendResult(text=content, usage=usage, model_version=model_version)

    async def generate_object(self, params: BackendCallParams) -> BackendResult:
        if not params.schema_:
            raise FatalBackendError(
                "Schema is required for object generation",
                details={"model": params.model},
            )
        content, usage, model_version = await self._complete(params)
        parsed = self._decode_object(content, params.model)
        return BackendResult(parsed=parsed, usage=usage, model_version=model_version)

    async def stream_text(self, params: BackendCallParams) -> BackendResult:
        start_time = time.time()
        payload = self._build_payload(params, stream=True)
        chunks: list[str] = []
        usage = TokenUsage()
        model_version = params.model

        try:
            client = await self._get_client()
            async with client.stream(
                "POST",
                self._url("/chat/completions", params.base_url),
                json=payload,
                headers=self._headers(params.api_key),
            ) as response:
                if response.is_error:
                    await response.aread()
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data_str = line[len("data:"):].strip()
                    if data_str == "[DONE]":
                        break
                    data = json.loads(data_str)
                    model_version = data.get("model", model_version)
                    for choice in data.get("choices") or []:
                        delta = choice.get("delta") or {}
                        if delta.get("content"):
                            chunks.append(delta["content"])
                    if data.get("usage"):
                        usage = self._usage(data)
        except httpx.HTTPStatusError as e:
            raise self._map_http_error(e, params.model) from e
        except httpx.TransportError as e:
            raise self._map_transport_error(e, params.model) from e
        except json.JSONDecodeError as e:
            raise FatalBackendError(
                f"Invalid event in {self.provider_name} stream",
                details={"parse_error": str(e), "model": params.model},
            ) from e

        self._record_metrics(params.model, usage, time.time() - start_time, True)
        return BackendResult(text="".join(chunks), usage=usage, model_version=model_version)

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            response = await client.get("/models", headers=self._headers(), timeout=5.0)
            response.raise_for_status()
            return True
        except (httpx.HTTPError, BackendError) as e:
            logger.warning("Health check failed", provider=self.provider_name, error=str(e))
            return False
