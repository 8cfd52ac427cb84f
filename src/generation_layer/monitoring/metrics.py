"""Custom Prometheus metrics for the Structured Generation Layer.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- generation_exhausted_total (every attempt skipped or failed)
- recovery_failures_total (model output that could not be recovered)
- retries_total (high retry rate indicates provider instability)
- telemetry_dropped_total (usage records lost to a full queue)
"""

from prometheus_client import Counter, Histogram

# === Generation Runner Metrics ===

generation_attempts_total = Counter(
    "generation_attempts_total",
    "Generation attempts by role, provider and outcome",
    ["role", "provider", "outcome"],
)
"""
Attempt counter for the unified generation runner.

Labels:
- role: main, research, fallback
- provider: ollama, openai, perplexity, openrouter, ...
- outcome: success, failed, skipped
"""

generation_exhausted_total = Counter(
    "generation_exhausted_total",
    "Generation calls where no attempt succeeded",
    ["service_kind"],
)
"""
Runs that returned no result.

Labels:
- service_kind: generate_text, stream_text, generate_object

Alert thresholds:
- WARN: any sustained non-zero rate (no provider reachable)
"""

# === Retry Metrics ===

retries_total = Counter(
    "retries_total",
    "Total retry attempts by error class and outcome",
    ["error_type", "success"],
)
"""
Retry counter.

Labels:
- error_type: exception class name of the transient failure
- success: true (a later call succeeded), false (retries exhausted)

Alert thresholds:
- WARN: retry rate > 10% of total requests
- CRITICAL: retry rate > 30% of total requests
"""

# === Recovery Metrics ===

recovery_failures_total = Counter(
    "recovery_failures_total",
    "Model outputs that could not be recovered into a subtask batch",
    ["stage"],
)
"""
Recovery failures by stage.

Labels:
- stage: extract (no strategy produced a batch), schema (batch failed validation)
"""

recovery_strategy_total = Counter(
    "recovery_strategy_total",
    "Successful extractions by recovery strategy",
    ["strategy"],
)
"""
Which strategy recovered the batch.

Labels:
- strategy: fenced_or_plain, bare_array, embedded_block

A rising share of bare_array/embedded_block means the model is drifting away
from the requested output format.
"""

corrections_total = Counter(
    "corrections_total",
    "Fixes applied by the batch correction pass",
    ["kind"],
)
"""
Correction pass fixes.

Labels:
- kind: renumbered, dependency_dropped, status_reset, details_defaulted, invalid_item
"""

# === LLM Performance Metrics ===

llm_latency_seconds = Histogram(
    "llm_latency_seconds",
    "LLM generation latency in seconds",
    ["provider", "model", "success"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)
"""
LLM generation latency histogram.

Labels:
- provider: Backend provider id
- model: Model name (e.g., qwen2.5:7b, gpt-4o-mini)
- success: true (generation succeeded), false (generation failed)

Buckets optimized for LLM inference (0.5s to 120s).
"""

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total tokens consumed by model and type",
    ["model", "token_type"],
)
"""
Token consumption counter.

Labels:
- model: Model name
- token_type: prompt (input tokens), completion (output tokens)

Used for cost estimation and capacity planning.
"""

# === Telemetry Metrics ===

telemetry_records_total = Counter(
    "telemetry_records_total",
    "Usage telemetry records by outcome",
    ["outcome"],
)
"""
Usage telemetry pipeline.

Labels:
- outcome: queued, written, sink_error
"""

telemetry_dropped_total = Counter(
    "telemetry_dropped_total",
    "Usage telemetry records dropped because the queue was full",
)
"""
Dropped telemetry records.

Alert thresholds:
- WARN: any drop (sink too slow or unavailable)
"""
