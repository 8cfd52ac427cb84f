"""Unified generation runner: role fallback, retry, telemetry."""

from generation_layer.generation.exceptions import GenerationCancelled, NoProviderAvailable
from generation_layer.generation.runner import UnifiedGenerationRunner

__all__ = ["GenerationCancelled", "NoProviderAvailable", "UnifiedGenerationRunner"]
