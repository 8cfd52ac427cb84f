"""Role -> model resolution, attempt sequencing and credential checks."""

from generation_layer.roles.credentials import CredentialChecker, api_key_env_name
from generation_layer.roles.resolver import RoleResolver

__all__ = ["CredentialChecker", "RoleResolver", "api_key_env_name"]
