"""
Configuration for the Structured Generation Layer.

Two layers:
- Settings: loaded from environment variables / .env (pydantic-settings)
- ConfigSnapshot: frozen, per-call view of role models and global options,
  built explicitly by load_config_snapshot(). There is no module-level cache
  of snapshots: reloading means calling load_config_snapshot() again.

An optional project config file (JSON) can override the role models:

    {
        "models": {
            "main": {"provider": "ollama", "modelId": "qwen2.5:7b", "maxTokens": 4096, "temperature": 0.2},
            "research": {...},
            "fallback": {...}
        },
        "global": {"debug": false, "defaultSubtasks": 5, "userId": "..."}
    }
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from generation_layer.models.enums import Role

logger = structlog.get_logger(__name__)

SUPPORTED_PROVIDERS: tuple[str, ...] = ("ollama", "openai", "perplexity", "openrouter")


class ConfigurationError(Exception):
    """Raised when role settings from the environment are invalid."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Structured Generation Layer"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Role models (defaults, overridable by project config file) ===
    MAIN_PROVIDER: str = "ollama"
    MAIN_MODEL: str = "qwen2.5:7b"
    MAIN_MAX_TOKENS: int = 4096
    MAIN_TEMPERATURE: float = 0.2
    MAIN_BASE_URL: Optional[str] = None

    RESEARCH_PROVIDER: str = "ollama"
    RESEARCH_MODEL: str = "qwen2.5:14b"
    RESEARCH_MAX_TOKENS: int = 4096
    RESEARCH_TEMPERATURE: float = 0.1
    RESEARCH_BASE_URL: Optional[str] = None

    # Fallback is optional: empty provider/model means "not configured"
    FALLBACK_PROVIDER: str = ""
    FALLBACK_MODEL: str = ""
    FALLBACK_MAX_TOKENS: int = 4096
    FALLBACK_TEMPERATURE: float = 0.2
    FALLBACK_BASE_URL: Optional[str] = None

    PROJECT_CONFIG_PATH: Optional[str] = None  # e.g. ".taskmanager/config.json"

    # === Providers ===
    OLLAMA_BASE_URL: str = "http://ollama:11434"
    OLLAMA_TIMEOUT: int = 120  # seconds
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    PERPLEXITY_BASE_URL: str = "https://api.perplexity.ai"
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    HTTP_TIMEOUT: int = 120  # seconds, hosted providers
    AMBIENT_CREDENTIAL_PROVIDERS: list[str] = ["ollama"]  # never pre-filtered for API keys

    # === Retry ===
    MAX_RETRIES: int = 2
    RETRY_BASE_DELAY: float = 1.0  # seconds, doubled per retry

    # === Telemetry ===
    USER_ID: Optional[str] = None
    TELEMETRY_ENABLED: bool = True
    TELEMETRY_QUEUE_SIZE: int = 256
    TELEMETRY_REDIS_KEY: str = "generation_layer:usage"
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20

    # === Features ===
    DEFAULT_SUBTASKS: int = 5
    DEFAULT_NUM_TASKS: int = 10

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True


class RoleModelConfig(BaseModel):
    """Model selection and generation parameters for one role."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    provider: str = ""
    model_id: str = ""
    max_tokens: int = Field(default=4096, ge=1)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    base_url: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        """Both provider and model are present."""
        return bool(self.provider) and bool(self.model_id)


class ConfigSnapshot(BaseModel):
    """
    Immutable configuration view handed to the generation runner.

    Concurrent runs share one snapshot and never mutate it. `api_keys`
    holds the provider keys visible when the snapshot was taken, keyed by
    environment variable name (e.g. "OPENAI_API_KEY").
    """

    model_config = ConfigDict(frozen=True)

    main: RoleModelConfig
    research: RoleModelConfig
    fallback: RoleModelConfig = RoleModelConfig()
    user_id: Optional[str] = None
    debug: bool = False
    default_subtasks: int = 5
    default_num_tasks: int = 10
    ambient_credential_providers: tuple[str, ...] = ("ollama",)
    api_keys: dict[str, str] = Field(default_factory=dict)

    def for_role(self, role: Role) -> RoleModelConfig:
        """Return the model config for a role."""
        if role == Role.RESEARCH:
            return self.research
        if role == Role.FALLBACK:
            return self.fallback
        return self.main


def is_supported_provider(provider: str) -> bool:
    return provider.lower() in SUPPORTED_PROVIDERS


def _role_from_settings(settings: Settings, prefix: str) -> RoleModelConfig:
    """Role defaults from settings. Bad values here are a deployment error."""
    try:
        config = RoleModelConfig(
            provider=getattr(settings, f"{prefix}_PROVIDER"),
            model_id=getattr(settings, f"{prefix}_MODEL"),
            max_tokens=getattr(settings, f"{prefix}_MAX_TOKENS"),
            temperature=getattr(settings, f"{prefix}_TEMPERATURE"),
            base_url=getattr(settings, f"{prefix}_BASE_URL"),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {prefix.lower()} role settings: {e}") from e

    if config.provider and not is_supported_provider(config.provider):
        raise ConfigurationError(
            f"Unsupported {prefix.lower()} provider {config.provider!r}, "
            f"expected one of {', '.join(SUPPORTED_PROVIDERS)}"
        )
    return config


_FILE_ROLE_KEYS = {
    "provider": "provider",
    "modelId": "model_id",
    "maxTokens": "max_tokens",
    "temperature": "temperature",
    "baseUrl": "base_url",
}


def _role_from_file(
    role_name: str,
    raw: Any,
    base: RoleModelConfig,
    on_invalid: RoleModelConfig,
    path: Path,
) -> RoleModelConfig:
    """
    Merge one role section of the project file onto its defaults.

    An invalid section (bad field value or unsupported provider) is
    ignored with a warning and `on_invalid` is used instead.
    """
    if not isinstance(raw, dict):
        return base

    merged = base.model_dump()
    merged.update({field: raw[key] for key, field in _FILE_ROLE_KEYS.items() if key in raw})
    try:
        config = RoleModelConfig(**merged)
    except ValidationError as e:
        logger.warning(
            "Invalid role config in project file, ignoring it",
            role=role_name,
            path=str(path),
            fields=[".".join(str(loc) for loc in err["loc"]) for err in e.errors()],
        )
        return on_invalid

    if not is_supported_provider(config.provider):
        logger.warning(
            "Unsupported provider in project file, ignoring role config",
            role=role_name,
            provider=config.provider,
            path=str(path),
        )
        return on_invalid
    return config


def _read_project_config(path: Path) -> Optional[dict[str, Any]]:
    """Parsed project file, or None (logged) when it cannot be used."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in project config file, using defaults", path=str(path), error=e.msg)
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read project config file, using defaults", path=str(path), error=str(e))
        return None

    if not isinstance(data, dict):
        logger.error("Project config file is not a JSON object, using defaults", path=str(path))
        return None
    return data


def _global_int(global_section: dict[str, Any], key: str, default: int) -> int:
    value = global_section.get(key, default)
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    logger.warning("Invalid global value in project file, using default", key=key, value=value, default=default)
    return default


def _collect_api_keys(environ: dict[str, str]) -> dict[str, str]:
    return {
        name: value
        for name, value in environ.items()
        if name.endswith("_API_KEY") and value
    }


def load_config_snapshot(
    settings: Settings,
    environ: Optional[dict[str, str]] = None,
) -> ConfigSnapshot:
    """
    Build a frozen ConfigSnapshot from settings plus the optional project file.

    Merge order: Settings defaults/env -> project config file. The fallback
    role from the file only replaces the defaults when it names both a
    provider and a model.

    Args:
        settings: Loaded application settings
        environ: Environment used for API key discovery (default: os.environ)

    Returns:
        ConfigSnapshot

    A project file that cannot be read or parsed is logged and ignored.
    Inside a readable file, an invalid main or research section falls back
    to the settings defaults and an invalid fallback section leaves the
    fallback role unconfigured.

    Raises:
        ConfigurationError: Role settings from the environment are invalid
    """
    defaults = {
        "main": _role_from_settings(settings, "MAIN"),
        "research": _role_from_settings(settings, "RESEARCH"),
        "fallback": _role_from_settings(settings, "FALLBACK"),
    }
    roles = dict(defaults)
    global_section: dict[str, Any] = {}
    config_source = "settings"

    if settings.PROJECT_CONFIG_PATH:
        path = Path(settings.PROJECT_CONFIG_PATH)
        if path.exists():
            data = _read_project_config(path)
        else:
            logger.debug("Project config file not found, using settings", path=str(path))
            data = None
        if data is not None:
            models = data.get("models")
            models = models if isinstance(models, dict) else {}
            for role_name in ("main", "research"):
                roles[role_name] = _role_from_file(
                    role_name, models.get(role_name), defaults[role_name], defaults[role_name], path
                )
            fallback_raw = models.get("fallback")
            if isinstance(fallback_raw, dict) and fallback_raw.get("provider") and fallback_raw.get("modelId"):
                roles["fallback"] = _role_from_file(
                    "fallback", fallback_raw, defaults["fallback"], RoleModelConfig(), path
                )
            raw_global = data.get("global")
            global_section = raw_global if isinstance(raw_global, dict) else {}
            config_source = f"file ({path})"

    user_id = global_section.get("userId", settings.USER_ID)
    snapshot = ConfigSnapshot(
        main=roles["main"],
        research=roles["research"],
        fallback=roles["fallback"],
        user_id=str(user_id) if user_id else None,
        debug=bool(global_section.get("debug", settings.DEBUG)),
        default_subtasks=_global_int(global_section, "defaultSubtasks", settings.DEFAULT_SUBTASKS),
        default_num_tasks=_global_int(global_section, "defaultNumTasks", settings.DEFAULT_NUM_TASKS),
        ambient_credential_providers=tuple(
            p.lower() for p in settings.AMBIENT_CREDENTIAL_PROVIDERS
        ),
        api_keys=_collect_api_keys(dict(os.environ if environ is None else environ)),
    )

    logger.info(
        "Configuration snapshot loaded",
        source=config_source,
        main=f"{snapshot.main.provider}/{snapshot.main.model_id}",
        research=f"{snapshot.research.provider}/{snapshot.research.model_id}",
        fallback_configured=snapshot.fallback.is_configured,
    )
    return snapshot


# Global settings instance
settings = Settings()
