"""
JSON Schema validation of extracted subtask lists.

Validates against resources/schema/subtask_v1.json (Draft 7). Hard fail:
any violation rejects the whole batch.
"""

from typing import Any, Optional

import structlog
from jsonschema import Draft7Validator

from generation_layer.monitoring.metrics import recovery_failures_total
from generation_layer.recovery.exceptions import SubtaskSchemaError
from generation_layer.resources import load_schema

logger = structlog.get_logger(__name__)

_validator: Optional[Draft7Validator] = None


def _get_validator() -> Draft7Validator:
    global _validator
    if _validator is None:
        schema = load_schema("subtask_v1")
        Draft7Validator.check_schema(schema)
        _validator = Draft7Validator(schema)
    return _validator


def validate_subtasks(subtasks: list[Any], raw_content: Optional[str] = None) -> None:
    """
    Validate a raw subtasks list.

    Raises:
        SubtaskSchemaError: With up to 10 formatted validation errors
    """
    validator = _get_validator()
    errors = sorted(
        validator.iter_errors({"subtasks": subtasks}),
        key=lambda e: list(e.absolute_path),
    )
    if not errors:
        return

    formatted = []
    for error in errors[:10]:
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        formatted.append(f"{path}: {error.message}")

    recovery_failures_total.labels(stage="schema").inc()
    logger.warning("Subtask schema validation failed", error_count=len(errors), errors=formatted)
    raise SubtaskSchemaError(
        f"Output is valid JSON but does not match the subtask schema ({len(errors)} errors)",
        validation_errors=formatted,
        raw_content=raw_content,
    )
