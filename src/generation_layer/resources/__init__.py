"""Packaged prompt templates, JSON schemas and the model price table."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

RESOURCES_DIR = Path(__file__).parent
PROMPTS_DIR = RESOURCES_DIR / "prompts"
SCHEMA_DIR = RESOURCES_DIR / "schema"
SUPPORTED_MODELS_PATH = RESOURCES_DIR / "supported_models.json"


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    """Load a packaged JSON schema by file stem (e.g. "subtask_v1")."""
    with open(SCHEMA_DIR / f"{name}.json", "r", encoding="utf-8") as f:
        return json.load(f)
