"""Unit tests for OpenAICompatibleBackend (OpenAI, Perplexity, OpenRouter)."""

import json

import httpx
import pytest

from generation_layer.llm.exceptions import (
    AuthenticationError,
    BackendSchemaViolationError,
    FatalBackendError,
    RateLimitError,
)
from generation_layer.llm.openai_client import OpenAICompatibleBackend
from generation_layer.models.generation_models import BackendCallParams, ChatMessage


def completion(content: str, prompt_tokens: int = 20, completion_tokens: int = 10) -> dict:
    return {
        "id": "chatcmpl-1",
        "model": "gpt-4o-mini-2024-07-18",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    }


class TestOpenAICompatibleBackend:

    def setup_method(self):
        self.params = BackendCallParams(
            model="gpt-4o-mini",
            messages=[ChatMessage(role="user", content="List three colors")],
            max_tokens=128,
            temperature=0.2,
        )
        self.requests: list[httpx.Request] = []

    def _backend(self, status: int = 200, body=None, api_key: str = "sk-test", provider: str = "openai"):
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if isinstance(body, dict):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=body or "")

        return OpenAICompatibleBackend(
            provider_name=provider,
            base_url="https://api.example.test/v1",
            api_key=api_key,
            timeout=5,
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_generate_text(self):
        backend = self._backend(body=completion("red, green, blue"))

        result = await backend.generate_text(self.params)

        assert result.text == "red, green, blue"
        assert result.usage.input_tokens == 20
        assert result.usage.output_tokens == 10
        assert result.model_version == "gpt-4o-mini-2024-07-18"
        await backend.close()

    @pytest.mark.asyncio
    async def test_request_shape(self):
        backend = self._backend(body=completion("ok"))

        await backend.generate_text(self.params)

        request = self.requests[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["model"] == "gpt-4o-mini"
        assert payload["max_tokens"] == 128
        assert "response_format" not in payload
        assert "stream" not in payload
        await backend.close()

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        backend = self._backend(body=completion("ok"), api_key=None)

        await backend.generate_text(self.params)

        assert "Authorization" not in self.requests[0].headers
        await backend.close()

    @pytest.mark.asyncio
    async def test_per_call_key_overrides_constructor_key(self):
        backend = self._backend(body=completion("ok"), api_key=None)
        params = self.params.model_copy(update={"api_key": "sk-rotated"})

        await backend.generate_text(params)

        assert self.requests[0].headers["Authorization"] == "Bearer sk-rotated"
        await backend.close()

    @pytest.mark.asyncio
    async def test_generate_object_uses_json_schema_format(self):
        schema = {"type": "object", "properties": {"tasks": {"type": "array"}}}
        backend = self._backend(body=completion('{"tasks": [{"id": 1}]}'))
        params = self.params.model_copy(update={"schema_": schema, "object_name": "tasks_data"})

        result = await backend.generate_object(params)

        assert result.parsed == {"tasks": [{"id": 1}]}
        response_format = json.loads(self.requests[0].content)["response_format"]
        assert response_format == {
            "type": "json_schema",
            "json_schema": {"name": "tasks_data", "schema": schema},
        }
        await backend.close()

    @pytest.mark.asyncio
    async def test_generate_object_default_name(self):
        backend = self._backend(body=completion("{}"))
        params = self.params.model_copy(update={"schema_": {"type": "object"}})

        await backend.generate_object(params)

        payload = json.loads(self.requests[0].content)
        assert payload["response_format"]["json_schema"]["name"] == "generated_object"
        await backend.close()

    @pytest.mark.asyncio
    async def test_generate_object_invalid_json(self):
        backend = self._backend(body=completion("Sure! Here are your tasks"))
        params = self.params.model_copy(update={"schema_": {"type": "object"}})

        with pytest.raises(BackendSchemaViolationError, match="not valid JSON"):
            await backend.generate_object(params)
        await backend.close()

    @pytest.mark.asyncio
    async def test_no_choices_is_fatal(self):
        backend = self._backend(body={"choices": [], "usage": {}})

        with pytest.raises(FatalBackendError, match="Empty response from openai"):
            await backend.generate_text(self.params)
        await backend.close()

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        backend = self._backend(status=429, body={"error": {"message": "slow down"}})

        with pytest.raises(RateLimitError):
            await backend.generate_text(self.params)
        await backend.close()

    @pytest.mark.asyncio
    async def test_rejected_key_names_provider(self):
        backend = self._backend(status=401, body={"error": "bad key"}, provider="perplexity")

        with pytest.raises(AuthenticationError, match="perplexity"):
            await backend.generate_text(self.params)
        await backend.close()

    @pytest.mark.asyncio
    async def test_stream_text_parses_sse(self):
        events = [
            {"model": "gpt-4o-mini", "choices": [{"delta": {"role": "assistant"}}]},
            {"model": "gpt-4o-mini", "choices": [{"delta": {"content": "red, "}}]},
            {"model": "gpt-4o-mini", "choices": [{"delta": {"content": "blue"}}]},
            {"model": "gpt-4o-mini", "choices": [], "usage": {"prompt_tokens": 9, "completion_tokens": 3}},
        ]
        body = "".join(f"data: {json.dumps(e)}\n\n" for e in events) + "data: [DONE]\n\n"
        backend = self._backend(body=body)

        result = await backend.stream_text(self.params)

        assert result.text == "red, blue"
        assert result.usage.input_tokens == 9
        assert result.usage.output_tokens == 3
        payload = json.loads(self.requests[0].content)
        assert payload["stream"] is True
        assert payload["stream_options"] == {"include_usage": True}
        await backend.close()

    @pytest.mark.asyncio
    async def test_stream_ignores_comments_and_stops_at_done(self):
        body = (
            ": keep-alive\n\n"
            'data: {"choices": [{"delta": {"content": "a"}}]}\n\n'
            "data: [DONE]\n\n"
            'data: {"choices": [{"delta": {"content": "ignored"}}]}\n\n'
        )
        backend = self._backend(body=body)

        result = await backend.stream_text(self.params)

        assert result.text == "a"
        await backend.close()

    @pytest.mark.asyncio
    async def test_health_check(self):
        backend = self._backend(body={"data": []})

        assert await backend.health_check() is True
        assert self.requests[0].url.path == "/v1/models"
        await backend.close()

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self):
        backend = self._backend(status=500, body={"error": "down"})

        assert await backend.health_check() is False
        await backend.close()
