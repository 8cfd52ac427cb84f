"""
Unified generation runner.

Single entry point for text, streamed text and structured-object
generation. For each request it walks the attempt sequence built by the
role resolver (requested role first, then an eligible fallback), wraps
every backend call in the retry controller, and returns the first
success. Nothing is raised for ordinary provider failures: when every
attempt is skipped or fails the runner returns None.

Usage:
    runner = UnifiedGenerationRunner(snapshot, registry, emitter=emitter)
    result = await runner.generate_text(GenerationRequest(prompt="..."))
    if result is None:
        ...  # no provider produced a result
"""

import time
from typing import Optional

import structlog
from jsonschema import Draft7Validator

from generation_layer.config import ConfigSnapshot
from generation_layer.llm.base_client import BaseModelBackend
from generation_layer.llm.exceptions import BackendSchemaViolationError
from generation_layer.llm.registry import BackendRegistry
from generation_layer.logging_config import generation_context
from generation_layer.models.enums import OutputChannel, ServiceKind
from generation_layer.models.generation_models import (
    AttemptSpec,
    BackendCallParams,
    BackendResult,
    ChatMessage,
    GenerationRequest,
    GenerationResult,
    TokenUsage,
)
from generation_layer.models.telemetry_models import UsageTelemetry
from generation_layer.monitoring.metrics import (
    generation_attempts_total,
    generation_exhausted_total,
)
from generation_layer.retry.cancellation import CancellationToken
from generation_layer.retry.controller import SleepFn, call_with_retry
from generation_layer.retry.exceptions import GenerationCancelled
from generation_layer.roles.credentials import CredentialChecker
from generation_layer.roles.resolver import RoleResolver
from generation_layer.telemetry.emitter import TelemetryEmitter
from generation_layer.telemetry.pricing import compute_cost

logger = structlog.get_logger(__name__)


class UnifiedGenerationRunner:
    """
    Role-based generation with ordered fallback and bounded retry.

    Attributes:
        snapshot: Frozen configuration used for every run
        registry: Provider id -> backend lookup
        resolver: Builds attempt sequences from the snapshot
        credentials: Decides whether a provider can be called
        emitter: Optional telemetry emitter (records are dropped if None)
    """

    def __init__(
        self,
        snapshot: ConfigSnapshot,
        registry: BackendRegistry,
        *,
        emitter: Optional[TelemetryEmitter] = None,
        max_retries: int = 2,
        base_delay: float = 1.0,
        sleep: Optional[SleepFn] = None,
    ):
        self.snapshot = snapshot
        self.registry = registry
        self.resolver = RoleResolver(snapshot)
        self.credentials = CredentialChecker(snapshot)
        self.emitter = emitter
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def with_snapshot(self, snapshot: ConfigSnapshot) -> "UnifiedGenerationRunner":
        """New runner over a reloaded snapshot, sharing backends and emitter."""
        return UnifiedGenerationRunner(
            snapshot,
            self.registry,
            emitter=self.emitter,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            sleep=self._sleep,
        )

    async def generate_text(
        self, request: GenerationRequest, cancel_token: Optional[CancellationToken] = None
    ) -> Optional[GenerationResult]:
        return await self.run(ServiceKind.GENERATE_TEXT, request, cancel_token)

    async def stream_text(
        self, request: GenerationRequest, cancel_token: Optional[CancellationToken] = None
    ) -> Optional[GenerationResult]:
        return await self.run(ServiceKind.STREAM_TEXT, request, cancel_token)

    async def generate_object(
        self, request: GenerationRequest, cancel_token: Optional[CancellationToken] = None
    ) -> Optional[GenerationResult]:
        return await self.run(ServiceKind.GENERATE_OBJECT, request, cancel_token)

    async def run(
        self,
        service_kind: ServiceKind,
        request: GenerationRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[GenerationResult]:
        """
        Execute one logical generation call.

        Args:
            service_kind: Backend operation to invoke
            request: Prompt, role and optional schema
            cancel_token: Aborts backoff waits when cancelled

        Returns:
            GenerationResult from the first successful attempt, or None

        Raises:
            ValueError: generate_object requested without a schema
            GenerationCancelled: Caller cancelled during a backoff wait
        """
        service_kind = ServiceKind(service_kind)
        if service_kind == ServiceKind.GENERATE_OBJECT and not request.schema_:
            raise ValueError("generate_object requires a JSON schema")

        with generation_context(command=request.command_name, service_kind=service_kind.value):
            return await self._run_sequence(service_kind, request, cancel_token)

    async def _run_sequence(
        self,
        service_kind: ServiceKind,
        request: GenerationRequest,
        cancel_token: Optional[CancellationToken],
    ) -> Optional[GenerationResult]:
        sequence = self.resolver.build_attempt_sequence(request.role)
        start_time = time.time()

        logger.info(
            "Starting generation",
            service_kind=service_kind.value,
            role=request.role.value,
            command=request.command_name,
            attempts=[f"{a.role.value}:{a.provider}/{a.model_id}" for a in sequence],
        )

        for attempt in sequence:
            backend = self._eligible_backend(attempt)
            if backend is None:
                generation_attempts_total.labels(
                    role=attempt.role.value, provider=attempt.provider or "none", outcome="skipped"
                ).inc()
                continue

            params = self._build_params(attempt, request)
            try:
                with generation_context(
                    role=attempt.role.value, provider=attempt.provider, model=attempt.model_id
                ):
                    backend_result = await call_with_retry(
                        lambda: self._invoke(backend, service_kind, params, request),
                        max_retries=self.max_retries,
                        base_delay=self.base_delay,
                        cancel_token=cancel_token,
                        sleep=self._sleep,
                        label=f"{attempt.role.value}:{attempt.provider}",
                    )
            except GenerationCancelled:
                logger.info("Generation cancelled", role=attempt.role.value, provider=attempt.provider)
                raise
            except Exception as e:
                generation_attempts_total.labels(
                    role=attempt.role.value, provider=attempt.provider, outcome="failed"
                ).inc()
                logger.warning(
                    "Attempt failed, trying next",
                    role=attempt.role.value,
                    provider=attempt.provider,
                    model=attempt.model_id,
                    error_type=type(e).__name__,
                    error=str(e),
                    attempts=getattr(e, "attempts", 1),
                )
                continue

            generation_attempts_total.labels(
                role=attempt.role.value, provider=attempt.provider, outcome="success"
            ).inc()
            telemetry = self._record_usage(attempt, request, backend_result.usage)

            logger.info(
                "Generation succeeded",
                service_kind=service_kind.value,
                role=attempt.role.value,
                provider=attempt.provider,
                model=attempt.model_id,
                input_tokens=backend_result.usage.input_tokens,
                output_tokens=backend_result.usage.output_tokens,
                latency_ms=int((time.time() - start_time) * 1000),
            )
            return GenerationResult(
                text=backend_result.text,
                parsed=backend_result.parsed,
                usage=backend_result.usage,
                provider=attempt.provider,
                model_id=attempt.model_id,
                role=attempt.role,
                telemetry=telemetry,
            )

        generation_exhausted_total.labels(service_kind=service_kind.value).inc()
        logger.error(
            "All generation attempts failed or were skipped",
            service_kind=service_kind.value,
            role=request.role.value,
            command=request.command_name,
        )
        return None

    def _eligible_backend(self, attempt: AttemptSpec) -> Optional[BaseModelBackend]:
        """Backend for the attempt, or None (logged) if it must be skipped."""
        if not attempt.is_resolved:
            logger.info("Skipping attempt: provider or model not configured", role=attempt.role.value)
            return None
        if not self.credentials.is_credentialed(attempt.provider):
            logger.info(
                "Skipping attempt: provider has no credentials",
                role=attempt.role.value,
                provider=attempt.provider,
            )
            return None
        backend = self.registry.get(attempt.provider)
        if backend is None:
            logger.info(
                "Skipping attempt: no backend registered for provider",
                role=attempt.role.value,
                provider=attempt.provider,
            )
        return backend

    def _build_params(self, attempt: AttemptSpec, request: GenerationRequest) -> BackendCallParams:
        """Call parameters, including the API key as of this runner's snapshot."""
        messages = []
        if request.system_prompt:
            messages.append(ChatMessage(role="system", content=request.system_prompt))
        messages.append(ChatMessage(role="user", content=request.prompt))
        return BackendCallParams(
            model=attempt.model_id,
            messages=messages,
            max_tokens=attempt.max_tokens,
            temperature=attempt.temperature,
            schema=request.schema_,
            object_name=request.object_name,
            base_url=attempt.base_url,
            api_key=self.credentials.api_key(attempt.provider),
        )

    async def _invoke(
        self,
        backend: BaseModelBackend,
        service_kind: ServiceKind,
        params: BackendCallParams,
        request: GenerationRequest,
    ) -> BackendResult:
        if service_kind == ServiceKind.STREAM_TEXT:
            return await backend.stream_text(params)
        if service_kind == ServiceKind.GENERATE_TEXT:
            return await backend.generate_text(params)

        result = await backend.generate_object(params)
        self._validate_object(result, request)
        return result

    @staticmethod
    def _validate_object(result: BackendResult, request: GenerationRequest) -> None:
        """Check a structured result against the request schema (Draft 7)."""
        if result.parsed is None:
            raise BackendSchemaViolationError("Backend returned no structured object")

        validator = Draft7Validator(request.schema_)
        errors = sorted(validator.iter_errors(result.parsed), key=lambda e: list(e.absolute_path))
        if errors:
            raise BackendSchemaViolationError(
                f"Structured output does not match schema ({len(errors)} errors)",
                details={
                    "object_name": request.object_name,
                    "errors": [
                        {"path": list(e.absolute_path), "message": e.message}
                        for e in errors[:10]
                    ],
                },
            )

    def _record_usage(
        self, attempt: AttemptSpec, request: GenerationRequest, usage: TokenUsage
    ) -> Optional[UsageTelemetry]:
        """
        Build the usage record for a successful call.

        Needs a user id and non-zero token counts. The record is attached to
        the result on every channel but only emitted on the CLI channel.
        """
        if not self.snapshot.user_id or usage.total_tokens == 0:
            return None

        total_cost, currency = compute_cost(
            attempt.provider, attempt.model_id, usage.input_tokens, usage.output_tokens
        )
        record = UsageTelemetry(
            user_id=self.snapshot.user_id,
            command_name=request.command_name,
            model_used=attempt.model_id,
            provider_name=attempt.provider,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            total_cost=total_cost,
            currency=currency,
            role=attempt.role.value,
        )

        if request.output_channel == OutputChannel.CLI and self.emitter is not None:
            self.emitter.emit(record)
        return record
