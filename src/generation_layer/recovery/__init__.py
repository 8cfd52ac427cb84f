"""
Structured output recovery: extract, validate and correct subtask batches.

Usage:
    >>> from generation_layer.recovery import recover_batch
    >>> batch = recover_batch(result.text, start_id=4, expected_count=3)
"""

from generation_layer.recovery.correction import DEFAULT_DETAILS, correct
from generation_layer.recovery.exceptions import MalformedOutput, SubtaskSchemaError
from generation_layer.recovery.parser import extract_subtasks, recover_batch
from generation_layer.recovery.repair import repair_text
from generation_layer.recovery.schema import validate_subtasks
from generation_layer.recovery.strategies import (
    RECOVERY_STRATEGIES,
    bare_array,
    embedded_block,
    fenced_or_plain,
)

__all__ = [
    "DEFAULT_DETAILS",
    "MalformedOutput",
    "RECOVERY_STRATEGIES",
    "SubtaskSchemaError",
    "bare_array",
    "correct",
    "embedded_block",
    "extract_subtasks",
    "fenced_or_plain",
    "recover_batch",
    "repair_text",
    "validate_subtasks",
]
