"""Provider credential checks."""

from typing import Optional

import structlog

from generation_layer.config import ConfigSnapshot

logger = structlog.get_logger(__name__)

PLACEHOLDER_PREFIX = "YOUR_"


def api_key_env_name(provider: str) -> str:
    """Environment variable holding a provider's key (e.g. "openai" -> "OPENAI_API_KEY")."""
    return f"{provider.upper().replace('-', '_')}_API_KEY"


class CredentialChecker:
    """
    Answers "can this provider be called?" from a config snapshot.

    Ambient-credential providers (local servers, cloud SDKs with their own
    credential chain) are never pre-filtered.
    """

    def __init__(self, snapshot: ConfigSnapshot):
        self.snapshot = snapshot
        self._ambient = {p.lower() for p in snapshot.ambient_credential_providers}

    def is_credentialed(self, provider: str) -> bool:
        if not provider:
            return False
        if provider.lower() in self._ambient:
            return True

        if self.api_key(provider) is None:
            logger.debug("No usable API key", provider=provider, env_var=api_key_env_name(provider))
            return False
        return True

    def api_key(self, provider: str) -> Optional[str]:
        """The provider's key from this snapshot, ignoring blanks and placeholders."""
        value = self.snapshot.api_keys.get(api_key_env_name(provider), "").strip()
        if not value or value.upper().startswith(PLACEHOLDER_PREFIX):
            return None
        return value
