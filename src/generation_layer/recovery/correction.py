"""
Batch correction pass.

Turns a raw (already extracted) subtasks list into a SubtaskBatch whose
ids are sequential from start_id and whose dependencies only point at
other members of the batch. Total: every input produces a batch, and
every fix is logged rather than raised.
"""

import re
from typing import Any, Optional

import structlog

from generation_layer.models.enums import SubtaskStatus
from generation_layer.models.subtask_models import Subtask, SubtaskBatch
from generation_layer.monitoring.metrics import corrections_total

logger = structlog.get_logger(__name__)

DEFAULT_DETAILS = "No details provided."

_INT_TEXT = re.compile(r"-?[0-9]+", re.ASCII)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INT_TEXT.fullmatch(value.strip()):
        return int(value.strip())
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def correct(
    raw_batch: list[Any],
    start_id: int,
    expected_count: Optional[int] = None,
) -> SubtaskBatch:
    """
    Normalize a raw subtasks list.

    1. Status forced to pending; non-list dependencies become []; missing
       details become "No details provided."; non-dict items become empty
       records.
    2. Ids renumbered sequentially from start_id; an id already assigned
       in this pass advances to the next unused one.
    3. Self-dependencies and dependencies outside [start_id, start_id + n)
       are dropped; repeated dependency ids are collapsed.
    4. A count different from expected_count is only a warning.
    """
    items = list(raw_batch) if isinstance(raw_batch, (list, tuple)) else []
    valid_range = range(start_id, start_id + len(items))
    assigned: set[int] = set()
    next_id = start_id
    subtasks: list[Subtask] = []

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            corrections_total.labels(kind="invalid_item").inc()
            logger.warning("Non-object subtask replaced by empty record", index=index)
            item = {}

        original_id = item.get("id")
        while next_id in assigned:
            next_id += 1
        new_id = next_id
        if _as_int(original_id) != new_id:
            corrections_total.labels(kind="renumbered").inc()
            logger.warning("Correcting subtask id", original_id=original_id, new_id=new_id)
        assigned.add(new_id)

        status = item.get("status")
        if status not in (None, SubtaskStatus.PENDING.value):
            corrections_total.labels(kind="status_reset").inc()
            logger.info("Resetting subtask status to pending", subtask_id=new_id, status=status)

        details = _as_text(item.get("details"))
        if not details:
            corrections_total.labels(kind="details_defaulted").inc()
            details = DEFAULT_DETAILS

        raw_deps = item.get("dependencies")
        if not isinstance(raw_deps, list):
            raw_deps = []

        dependencies: list[int] = []
        for raw_dep in raw_deps:
            dep = _as_int(raw_dep)
            if dep == new_id:
                corrections_total.labels(kind="dependency_dropped").inc()
                logger.warning("Subtask cannot depend on itself, removing", subtask_id=new_id)
                continue
            if dep is None or dep not in valid_range:
                corrections_total.labels(kind="dependency_dropped").inc()
                logger.warning(
                    "Dependency out of range, removing",
                    subtask_id=new_id,
                    dependency=raw_dep,
                    valid_from=valid_range.start,
                    valid_to=valid_range.stop - 1,
                )
                continue
            if dep not in dependencies:
                dependencies.append(dep)

        test_strategy = item.get("testStrategy")
        subtasks.append(
            Subtask(
                id=new_id,
                title=_as_text(item.get("title")),
                description=_as_text(item.get("description")),
                dependencies=dependencies,
                details=details,
                status=SubtaskStatus.PENDING.value,
                test_strategy=_as_text(test_strategy) if test_strategy is not None else None,
            )
        )
        next_id += 1

    if expected_count is not None and len(subtasks) != expected_count:
        logger.warning(
            "Generated subtask count differs from the requested count, using output as-is",
            generated=len(subtasks),
            expected=expected_count,
        )

    return SubtaskBatch(subtasks=subtasks, start_id=start_id, expected_count=expected_count)
