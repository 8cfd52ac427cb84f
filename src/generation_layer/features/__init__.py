"""Caller features built on the runner: task expansion and PRD ingestion."""

from generation_layer.features.expand_task import ExpandTaskResult, expand_task, next_subtask_id
from generation_layer.features.parse_prd import ParsePrdResult, normalize_tasks, parse_prd

__all__ = [
    "ExpandTaskResult",
    "ParsePrdResult",
    "expand_task",
    "next_subtask_id",
    "normalize_tasks",
    "parse_prd",
]
