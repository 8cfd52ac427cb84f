"""
Task expansion: break a parent task down into subtasks.

Flow:
    1. Pick the first new subtask id (append after existing ones, or 1 when
       replacing with force=True)
    2. Render prompts (research variant for the research role)
    3. runner.generate_text
    4. recover_batch on the returned text
    5. Return the updated parent task with the new batch
"""

from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from generation_layer.generation.exceptions import NoProviderAvailable
from generation_layer.generation.runner import UnifiedGenerationRunner
from generation_layer.llm.prompt_builder import PromptBuilder
from generation_layer.models.enums import OutputChannel, Role
from generation_layer.models.generation_models import GenerationRequest
from generation_layer.models.subtask_models import ParentTask, SubtaskBatch
from generation_layer.models.telemetry_models import UsageTelemetry
from generation_layer.recovery.parser import recover_batch
from generation_layer.retry.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

COMMAND_NAME = "expand-task"


class ExpandTaskResult(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    task: ParentTask
    batch: SubtaskBatch
    provider: str
    model_id: str
    telemetry: Optional[UsageTelemetry] = None


def next_subtask_id(task: ParentTask, force: bool = False) -> int:
    """First id for new subtasks: max(existing) + 1, or 1 when replacing."""
    if force or not task.subtasks:
        return 1
    return max(s.id for s in task.subtasks) + 1


async def expand_task(
    runner: UnifiedGenerationRunner,
    prompt_builder: PromptBuilder,
    task: ParentTask,
    num_subtasks: Optional[int] = None,
    use_research: bool = False,
    additional_context: str = "",
    force: bool = False,
    channel: OutputChannel = OutputChannel.CLI,
    cancel_token: Optional[CancellationToken] = None,
) -> ExpandTaskResult:
    """
    Generate subtasks for `task`.

    Args:
        runner: Generation runner
        prompt_builder: Renders the expansion prompts
        task: Parent task (left unchanged; an updated copy is returned)
        num_subtasks: Subtasks to request (default: snapshot.default_subtasks)
        use_research: Use the research role and prompt
        additional_context: Extra instructions appended to the prompt
        force: Replace existing subtasks instead of appending
        channel: Output channel (telemetry is only emitted on cli)
        cancel_token: Aborts backoff waits

    Raises:
        NoProviderAvailable: No attempt produced text
        MalformedOutput: Text could not be recovered into a batch
    """
    if num_subtasks is None or num_subtasks <= 0:
        num_subtasks = runner.snapshot.default_subtasks

    start_id = next_subtask_id(task, force)
    if force and task.subtasks:
        logger.info("Force flag set, replacing existing subtasks", task_id=task.id, existing=len(task.subtasks))

    role = Role.RESEARCH if use_research else Role.MAIN
    system_prompt, user_prompt = prompt_builder.build_expand_prompts(
        task,
        subtask_count=num_subtasks,
        next_subtask_id=start_id,
        additional_context=additional_context,
        use_research=use_research,
    )

    logger.info(
        "Expanding task",
        task_id=task.id,
        num_subtasks=num_subtasks,
        start_id=start_id,
        role=role.value,
    )

    result = await runner.generate_text(
        GenerationRequest(
            role=role,
            prompt=user_prompt,
            system_prompt=system_prompt,
            command_name=COMMAND_NAME,
            output_channel=channel,
        ),
        cancel_token=cancel_token,
    )
    if result is None:
        raise NoProviderAvailable(f"No provider could expand task {task.id}", role=role.value)

    batch = recover_batch(result.text or "", start_id=start_id, expected_count=num_subtasks)

    existing = [] if force else list(task.subtasks)
    updated = task.model_copy(update={"subtasks": existing + list(batch.subtasks)})

    logger.info(
        "Task expanded",
        task_id=task.id,
        added=len(batch),
        total_subtasks=len(updated.subtasks),
        provider=result.provider,
        model=result.model_id,
    )
    return ExpandTaskResult(
        task=updated,
        batch=batch,
        provider=result.provider,
        model_id=result.model_id,
        telemetry=result.telemetry,
    )
