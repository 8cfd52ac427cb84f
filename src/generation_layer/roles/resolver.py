"""
Role resolution and attempt sequencing.

Maps a role to its (provider, model, parameters) from a frozen config
snapshot, and builds the ordered list of attempts the runner walks through.
"""

import structlog

from generation_layer.config import ConfigSnapshot, RoleModelConfig
from generation_layer.models.enums import Role
from generation_layer.models.generation_models import AttemptSpec

logger = structlog.get_logger(__name__)


class RoleResolver:
    """Stateless view over one ConfigSnapshot."""

    def __init__(self, snapshot: ConfigSnapshot):
        self.snapshot = snapshot

    def resolve_role(self, role: Role) -> RoleModelConfig:
        """Return the configured model for `role` (may be unconfigured)."""
        return self.snapshot.for_role(Role(role))

    def _attempt(self, role: Role) -> AttemptSpec:
        config = self.resolve_role(role)
        return AttemptSpec(
            role=role,
            provider=config.provider,
            model_id=config.model_id,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )

    def build_attempt_sequence(self, requested_role: Role) -> list[AttemptSpec]:
        """
        Ordered attempts for one request.

        The requested role always comes first. The fallback role is appended
        only when it names both a provider and a model, and its provider
        differs from both the main and the research provider. A fallback
        sharing a provider with either primary role is not used, even when
        the requested role's provider is a different one.
        """
        requested_role = Role(requested_role)
        sequence = [self._attempt(requested_role)]

        if requested_role == Role.FALLBACK:
            return sequence

        fallback = self.snapshot.fallback
        if not fallback.is_configured:
            return sequence

        primary_providers = {
            self.snapshot.main.provider.lower(),
            self.snapshot.research.provider.lower(),
        }
        if fallback.provider.lower() in primary_providers:
            logger.debug(
                "Fallback provider shared with a primary role, not appended",
                fallback_provider=fallback.provider,
            )
            return sequence

        sequence.append(self._attempt(Role.FALLBACK))
        return sequence
