"""
Unit tests for UnifiedGenerationRunner.

Backends are MagicMock(spec=BaseModelBackend) from the unit conftest;
retry sleeps are recorded instead of awaited.
"""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
import structlog

from generation_layer.generation.runner import UnifiedGenerationRunner
from generation_layer.llm.exceptions import (
    AuthenticationError,
    RateLimitError,
)
from generation_layer.llm.openai_client import OpenAICompatibleBackend
from generation_layer.llm.registry import BackendRegistry
from generation_layer.models.enums import OutputChannel, Role
from generation_layer.models.generation_models import BackendResult, GenerationRequest, TokenUsage
from generation_layer.retry.cancellation import CancellationToken
from generation_layer.retry.exceptions import GenerationCancelled


SUBTASKS_SCHEMA = {
    "type": "object",
    "properties": {"subtasks": {"type": "array", "items": {"type": "object"}}},
    "required": ["subtasks"],
}


class TestUnifiedGenerationRunner:

    def setup_method(self):
        self.request = GenerationRequest(prompt="Break this task down", command_name="expand-task")

    def _runner(self, snapshot, registry, **kwargs):
        kwargs.setdefault("max_retries", 2)
        kwargs.setdefault("base_delay", 1.0)
        return UnifiedGenerationRunner(snapshot, registry, **kwargs)

    # ========================================
    # Happy path
    # ========================================

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self, make_snapshot, registry, mock_backend, recorded_sleep):
        runner = self._runner(make_snapshot(), registry, sleep=recorded_sleep)

        result = await runner.generate_text(self.request)

        assert result is not None
        assert result.text == "generated text"
        assert result.provider == "ollama"
        assert result.model_id == "qwen2.5:7b"
        assert result.role == Role.MAIN
        assert result.usage.total_tokens == 150
        mock_backend.generate_text.assert_awaited_once()
        assert recorded_sleep.delays == []

    @pytest.mark.asyncio
    async def test_call_params_built_from_role(self, make_snapshot, registry, mock_backend):
        runner = self._runner(make_snapshot(), registry)
        request = GenerationRequest(
            prompt="user prompt",
            system_prompt="system prompt",
            role=Role.RESEARCH,
        )

        await runner.generate_text(request)

        params = mock_backend.generate_text.await_args.args[0]
        assert params.model == "qwen2.5:14b"
        assert params.temperature == 0.1
        assert [m.role for m in params.messages] == ["system", "user"]
        assert params.messages[1].content == "user prompt"

    @pytest.mark.asyncio
    async def test_no_system_message_when_absent(self, make_snapshot, registry, mock_backend):
        await self._runner(make_snapshot(), registry).generate_text(self.request)

        params = mock_backend.generate_text.await_args.args[0]
        assert [m.role for m in params.messages] == ["user"]

    @pytest.mark.asyncio
    async def test_attempt_context_bound_during_backend_call(self, make_snapshot, backend_factory):
        seen = {}

        async def capture_context(params):
            seen.update(structlog.contextvars.get_contextvars())
            return BackendResult(text="ok")

        backend = backend_factory()
        backend.generate_text = AsyncMock(side_effect=capture_context)

        await self._runner(make_snapshot(), BackendRegistry({"ollama": backend})).generate_text(self.request)

        assert seen == {
            "command": "expand-task",
            "service_kind": "generate_text",
            "role": "main",
            "provider": "ollama",
            "model": "qwen2.5:7b",
        }
        assert structlog.contextvars.get_contextvars() == {}

    @pytest.mark.asyncio
    async def test_stream_text_uses_stream_operation(self, make_snapshot, registry, mock_backend):
        result = await self._runner(make_snapshot(), registry).stream_text(self.request)

        assert result.text == "generated text"
        mock_backend.stream_text.assert_awaited_once()
        mock_backend.generate_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_accepts_service_kind_string(self, make_snapshot, registry, mock_backend):
        result = await self._runner(make_snapshot(), registry).run("stream_text", self.request)
        assert result is not None
        mock_backend.stream_text.assert_awaited_once()

    # ========================================
    # Fallback
    # ========================================

    @pytest.mark.asyncio
    async def test_falls_back_after_fatal_error(self, make_snapshot, backend_factory, recorded_sleep):
        primary = backend_factory("ollama")
        primary.generate_text.side_effect = AuthenticationError("Authentication rejected", status=401)
        fallback = backend_factory("openai", text="fallback text")
        registry = BackendRegistry({"ollama": primary, "openai": fallback})
        snapshot = make_snapshot(
            fallback=("openai", "gpt-4o-mini"), api_keys={"OPENAI_API_KEY": "sk-test"}
        )

        result = await self._runner(snapshot, registry, sleep=recorded_sleep).generate_text(self.request)

        assert result.text == "fallback text"
        assert result.role == Role.FALLBACK
        assert result.provider == "openai"
        assert primary.generate_text.await_count == 1
        assert recorded_sleep.delays == []

    @pytest.mark.asyncio
    async def test_falls_back_after_retries_exhausted(self, make_snapshot, backend_factory, recorded_sleep):
        primary = backend_factory("ollama")
        primary.generate_text.side_effect = RateLimitError("Rate limit exceeded", status=429)
        fallback = backend_factory("openai", text="fallback text")
        registry = BackendRegistry({"ollama": primary, "openai": fallback})
        snapshot = make_snapshot(
            fallback=("openai", "gpt-4o-mini"), api_keys={"OPENAI_API_KEY": "sk-test"}
        )

        result = await self._runner(snapshot, registry, sleep=recorded_sleep).generate_text(self.request)

        assert result.provider == "openai"
        assert primary.generate_text.await_count == 3
        assert recorded_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_stops_after_first_success(self, make_snapshot, backend_factory):
        primary = backend_factory("ollama")
        fallback = backend_factory("openai")
        registry = BackendRegistry({"ollama": primary, "openai": fallback})
        snapshot = make_snapshot(
            fallback=("openai", "gpt-4o-mini"), api_keys={"OPENAI_API_KEY": "sk-test"}
        )

        await self._runner(snapshot, registry).generate_text(self.request)

        fallback.generate_text.assert_not_awaited()

    # ========================================
    # Skips and exhaustion
    # ========================================

    @pytest.mark.asyncio
    async def test_uncredentialed_fallback_skipped(self, make_snapshot, backend_factory):
        primary = backend_factory("ollama")
        primary.generate_text.side_effect = AuthenticationError("Authentication rejected", status=401)
        fallback = backend_factory("openai")
        registry = BackendRegistry({"ollama": primary, "openai": fallback})
        snapshot = make_snapshot(fallback=("openai", "gpt-4o-mini"))

        result = await self._runner(snapshot, registry).generate_text(self.request)

        assert result is None
        fallback.generate_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unresolved_role_skipped(self, make_snapshot, backend_factory):
        fallback = backend_factory("openai", text="fallback text")
        registry = BackendRegistry({"openai": fallback})
        snapshot = make_snapshot(
            main=("", ""), fallback=("openai", "gpt-4o-mini"), api_keys={"OPENAI_API_KEY": "sk-test"}
        )

        result = await self._runner(snapshot, registry).generate_text(self.request)

        assert result.role == Role.FALLBACK

    @pytest.mark.asyncio
    async def test_unregistered_provider_skipped(self, make_snapshot):
        result = await self._runner(make_snapshot(), BackendRegistry()).generate_text(self.request)
        assert result is None

    @pytest.mark.asyncio
    async def test_returns_none_when_every_attempt_fails(self, make_snapshot, registry, mock_backend, recorded_sleep):
        mock_backend.generate_text.side_effect = RateLimitError("Rate limit exceeded", status=429)

        result = await self._runner(make_snapshot(), registry, sleep=recorded_sleep).generate_text(self.request)

        assert result is None
        assert mock_backend.generate_text.await_count == 3

    # ========================================
    # Structured output
    # ========================================

    @pytest.mark.asyncio
    async def test_generate_object_requires_schema(self, make_snapshot, registry):
        with pytest.raises(ValueError):
            await self._runner(make_snapshot(), registry).generate_object(self.request)

    @pytest.mark.asyncio
    async def test_generate_object_valid(self, make_snapshot, backend_factory):
        backend = backend_factory(parsed={"subtasks": [{"id": 1}]})
        runner = self._runner(make_snapshot(), BackendRegistry({"ollama": backend}))
        request = GenerationRequest(prompt="p", schema=SUBTASKS_SCHEMA, object_name="subtasks")

        result = await runner.generate_object(request)

        assert result.parsed == {"subtasks": [{"id": 1}]}
        assert result.main_result == {"subtasks": [{"id": 1}]}
        params = backend.generate_object.await_args.args[0]
        assert params.schema_ == SUBTASKS_SCHEMA
        assert params.object_name == "subtasks"

    @pytest.mark.asyncio
    async def test_generate_object_schema_violation_is_not_retried(self, make_snapshot, backend_factory, recorded_sleep):
        backend = backend_factory(parsed={"tasks": []})
        runner = self._runner(make_snapshot(), BackendRegistry({"ollama": backend}), sleep=recorded_sleep)
        request = GenerationRequest(prompt="p", schema=SUBTASKS_SCHEMA)

        result = await runner.generate_object(request)

        assert result is None
        assert backend.generate_object.await_count == 1
        assert recorded_sleep.delays == []

    @pytest.mark.asyncio
    async def test_generate_object_missing_parsed_fails(self, make_snapshot, backend_factory):
        backend = backend_factory(text="plain text")
        runner = self._runner(make_snapshot(), BackendRegistry({"ollama": backend}))

        result = await runner.generate_object(GenerationRequest(prompt="p", schema=SUBTASKS_SCHEMA))

        assert result is None

    # ========================================
    # Telemetry
    # ========================================

    @pytest.mark.asyncio
    async def test_telemetry_emitted_on_cli(self, make_snapshot, registry, emitter, memory_sink):
        runner = self._runner(make_snapshot(user_id="user-1"), registry, emitter=emitter)

        result = await runner.generate_text(self.request)
        await emitter.flush()

        assert result.telemetry is not None
        assert result.telemetry.user_id == "user-1"
        assert result.telemetry.command_name == "expand-task"
        assert result.telemetry.total_tokens == 150
        assert memory_sink.records == [result.telemetry]
        await emitter.aclose()

    @pytest.mark.asyncio
    async def test_telemetry_not_emitted_on_mcp(self, make_snapshot, registry, emitter, memory_sink):
        runner = self._runner(make_snapshot(user_id="user-1"), registry, emitter=emitter)
        request = GenerationRequest(prompt="p", output_channel=OutputChannel.MCP)

        result = await runner.generate_text(request)
        await emitter.flush()

        assert result.telemetry is not None
        assert memory_sink.records == []

    @pytest.mark.asyncio
    async def test_telemetry_cost_from_price_table(self, make_snapshot, backend_factory):
        backend = backend_factory("openai", input_tokens=1_000_000, output_tokens=1_000_000)
        snapshot = make_snapshot(
            main=("openai", "gpt-4o-mini"), user_id="user-1", api_keys={"OPENAI_API_KEY": "sk-test"}
        )
        runner = self._runner(snapshot, BackendRegistry({"openai": backend}))

        result = await runner.generate_text(self.request)

        assert result.telemetry.total_cost == pytest.approx(0.75)
        assert result.telemetry.currency == "USD"

    @pytest.mark.asyncio
    async def test_no_telemetry_without_user_id(self, make_snapshot, registry):
        result = await self._runner(make_snapshot(), registry).generate_text(self.request)
        assert result.telemetry is None

    @pytest.mark.asyncio
    async def test_no_telemetry_for_zero_tokens(self, make_snapshot, backend_factory):
        backend = backend_factory(input_tokens=0, output_tokens=0)
        runner = self._runner(make_snapshot(user_id="user-1"), BackendRegistry({"ollama": backend}))

        result = await runner.generate_text(self.request)

        assert result.telemetry is None

    # ========================================
    # Cancellation
    # ========================================

    @pytest.mark.asyncio
    async def test_cancellation_propagates_and_skips_fallback(self, make_snapshot, backend_factory):
        primary = backend_factory("ollama")
        primary.generate_text.side_effect = RateLimitError("Rate limit exceeded", status=429)
        fallback = backend_factory("openai")
        registry = BackendRegistry({"ollama": primary, "openai": fallback})
        snapshot = make_snapshot(
            fallback=("openai", "gpt-4o-mini"), api_keys={"OPENAI_API_KEY": "sk-test"}
        )
        runner = self._runner(snapshot, registry, base_delay=10.0)
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(GenerationCancelled):
            await runner.generate_text(self.request, cancel_token=token)

        fallback.generate_text.assert_not_awaited()

    # ========================================
    # Snapshot reload
    # ========================================

    @pytest.mark.asyncio
    async def test_with_snapshot_shares_registry(self, make_snapshot, registry, mock_backend):
        runner = self._runner(make_snapshot(), registry)
        reloaded = runner.with_snapshot(make_snapshot(main=("ollama", "llama3.1:8b")))

        result = await reloaded.generate_text(self.request)

        assert reloaded.registry is registry
        assert result.model_id == "llama3.1:8b"
        assert runner.snapshot.main.model_id == "qwen2.5:7b"

    @pytest.mark.asyncio
    async def test_call_params_carry_snapshot_api_key(self, make_snapshot, backend_factory):
        backend = backend_factory("openai")
        snapshot = make_snapshot(main=("openai", "gpt-4o-mini"), api_keys={"OPENAI_API_KEY": "sk-current"})

        await self._runner(snapshot, BackendRegistry({"openai": backend})).generate_text(self.request)

        params = backend.generate_text.await_args.args[0]
        assert params.api_key == "sk-current"
        assert "sk-current" not in repr(params)

    @pytest.mark.asyncio
    async def test_rotated_key_used_after_reload(self, make_snapshot):
        """Backends built from an older snapshot still send the reloaded key."""
        seen_auth = []

        def handler(request):
            seen_auth.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={
                "model": "gpt-4o-mini",
                "choices": [{"message": {"role": "assistant", "content": "ok"}}],
                "usage": {"prompt_tokens": 3, "completion_tokens": 1},
            })

        backend = OpenAICompatibleBackend(
            provider_name="openai",
            base_url="https://api.openai.test/v1",
            api_key="sk-old",
            transport=httpx.MockTransport(handler),
        )
        registry = BackendRegistry({"openai": backend})
        main = ("openai", "gpt-4o-mini")
        runner = self._runner(make_snapshot(main=main, api_keys={"OPENAI_API_KEY": "sk-old"}), registry)
        reloaded = runner.with_snapshot(make_snapshot(main=main, api_keys={"OPENAI_API_KEY": "sk-new"}))

        await runner.generate_text(self.request)
        result = await reloaded.generate_text(self.request)

        assert result is not None
        assert seen_auth == ["Bearer sk-old", "Bearer sk-new"]
        await registry.close()

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_independent(self, make_snapshot, backend_factory):
        backend = backend_factory()
        backend.generate_text = AsyncMock(side_effect=lambda params: _echo_result(params))
        runner = self._runner(make_snapshot(), BackendRegistry({"ollama": backend}))

        results = await asyncio.gather(*[
            runner.generate_text(GenerationRequest(prompt=f"prompt {i}")) for i in range(5)
        ])

        assert [r.text for r in results] == [f"prompt {i}" for i in range(5)]


def _echo_result(params):
    return BackendResult(text=params.messages[-1].content, usage=TokenUsage(input_tokens=1, output_tokens=1))
