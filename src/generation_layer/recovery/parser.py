"""
Structured output recovery parser.

Pipeline for raw model text:
    1. repair_text: textual fixes (e.g. `"dependencies": ,`)
    2. extraction strategies, first success wins
    3. JSON Schema validation of every element (hard fail)
    4. correction pass (ids, dependencies, status)
"""

from typing import Any, Optional

import structlog

from generation_layer.models.subtask_models import SubtaskBatch
from generation_layer.monitoring.metrics import recovery_failures_total, recovery_strategy_total
from generation_layer.recovery.correction import correct
from generation_layer.recovery.exceptions import MalformedOutput
from generation_layer.recovery.repair import repair_text
from generation_layer.recovery.schema import validate_subtasks
from generation_layer.recovery.strategies import RECOVERY_STRATEGIES

logger = structlog.get_logger(__name__)


def extract_subtasks(raw_text: Any) -> list[Any]:
    """
    Pull the raw subtasks list out of model text.

    Raises:
        MalformedOutput: Input is not a non-empty string, or no strategy matched
    """
    if not isinstance(raw_text, str):
        recovery_failures_total.labels(stage="extract").inc()
        raise MalformedOutput(
            f"Model output is not a string (got {type(raw_text).__name__})",
            details={"received_type": type(raw_text).__name__},
        )
    if not raw_text.strip():
        recovery_failures_total.labels(stage="extract").inc()
        raise MalformedOutput("Model output is empty", raw_content=raw_text)

    text = repair_text(raw_text)
    logger.debug("Recovering subtasks from model output", length=len(text), preview=text[:200])

    for name, strategy in RECOVERY_STRATEGIES:
        subtasks = strategy(text)
        if subtasks is not None:
            recovery_strategy_total.labels(strategy=name).inc()
            logger.debug("Extraction strategy succeeded", strategy=name, count=len(subtasks))
            return subtasks
        logger.debug("Extraction strategy found nothing", strategy=name)

    recovery_failures_total.labels(stage="extract").inc()
    logger.error("All extraction strategies failed", length=len(text), preview=text[:500])
    raise MalformedOutput(
        "Failed to parse a valid subtasks object from the model output",
        raw_content=text,
    )


def recover_batch(
    raw_text: Any,
    start_id: int,
    expected_count: Optional[int] = None,
) -> SubtaskBatch:
    """
    Turn raw model text into a corrected SubtaskBatch.

    Args:
        raw_text: Model output
        start_id: First id of the batch
        expected_count: Requested subtask count (mismatch only warns)

    Raises:
        MalformedOutput: Nothing could be extracted
        SubtaskSchemaError: Extracted list fails schema validation
    """
    subtasks = extract_subtasks(raw_text)
    validate_subtasks(subtasks, raw_content=raw_text)
    batch = correct(subtasks, start_id, expected_count)

    logger.info(
        "Recovered subtask batch",
        count=len(batch),
        start_id=start_id,
        expected_count=expected_count,
    )
    return batch
