"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
"""

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from generation_layer.config import ConfigSnapshot, RoleModelConfig, Settings
from generation_layer.models.subtask_models import ParentTask, Subtask


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.OLLAMA_BASE_URL = "http://custom:11434"
    """
    return Settings(
        # === Application ===
        APP_NAME="Structured Generation Layer (Test)",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Roles ===
        MAIN_PROVIDER="ollama",
        MAIN_MODEL="qwen2.5:7b",
        RESEARCH_PROVIDER="ollama",
        RESEARCH_MODEL="qwen2.5:14b",
        FALLBACK_PROVIDER="",
        FALLBACK_MODEL="",
        PROJECT_CONFIG_PATH=None,

        # === Providers ===
        OLLAMA_BASE_URL="http://localhost:11434",
        OLLAMA_TIMEOUT=60,

        # === Redis ===
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,

        # === Telemetry / Monitoring ===
        USER_ID=None,
        TELEMETRY_ENABLED=False,
        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def make_snapshot():
    """Factory fixture to build a ConfigSnapshot.

    Usage:
        def test_something(make_snapshot):
            snapshot = make_snapshot(fallback=("openai", "gpt-4o-mini"), api_keys={"OPENAI_API_KEY": "sk-x"})
    """
    def _make(
        main: tuple[str, str] = ("ollama", "qwen2.5:7b"),
        research: tuple[str, str] = ("ollama", "qwen2.5:14b"),
        fallback: tuple[str, str] = ("", ""),
        user_id: str | None = None,
        api_keys: Dict[str, str] | None = None,
        **kwargs: Any,
    ) -> ConfigSnapshot:
        return ConfigSnapshot(
            main=RoleModelConfig(provider=main[0], model_id=main[1]),
            research=RoleModelConfig(provider=research[0], model_id=research[1], temperature=0.1),
            fallback=RoleModelConfig(provider=fallback[0], model_id=fallback[1]),
            user_id=user_id,
            api_keys=api_keys or {},
            **kwargs,
        )

    return _make


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_subtasks_data() -> list[Dict[str, Any]]:
    """Three well-formed raw subtasks numbered from 1."""
    return [
        {
            "id": 1,
            "title": "Create database schema",
            "description": "Design the tables for users and sessions",
            "dependencies": [],
            "details": "Use migrations so the schema can be rolled back safely.",
            "testStrategy": "Run migrations against an empty database",
        },
        {
            "id": 2,
            "title": "Implement login endpoint",
            "description": "Accept credentials and issue a session token",
            "dependencies": [1],
            "details": "Hash passwords with bcrypt and store sessions in the table.",
        },
        {
            "id": 3,
            "title": "Add logout endpoint",
            "description": "Invalidate the current session token",
            "dependencies": [2],
            "details": "Delete the session row and clear the cookie on the client.",
        },
    ]


@pytest.fixture
def sample_subtasks_text(sample_subtasks_data: list[Dict[str, Any]]) -> str:
    """Model output wrapping the sample subtasks in the expected object."""
    return json.dumps({"subtasks": sample_subtasks_data})


@pytest.fixture
def sample_parent_task() -> ParentTask:
    """Parent task with two existing subtasks."""
    return ParentTask(
        id=7,
        title="User authentication",
        description="Let users sign in and out of the web app",
        details="Session based, no OAuth for now",
        subtasks=[
            Subtask(id=1, title="Pick session store", description="Decide where sessions live",
                    details="Redis or the main database", dependencies=[]),
            Subtask(id=2, title="Write auth middleware", description="Reject requests without session",
                    details="Runs before every protected route", dependencies=[1]),
        ],
    )
