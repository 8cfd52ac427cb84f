"""
PRD ingestion: turn a requirements document into top-level tasks.

Uses generate_object with the prd_tasks_v1 schema, then renumbers the
tasks after the existing ones and keeps only dependencies that point at
an existing task or at a lower new id.
"""

from typing import Any, Optional, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from generation_layer.generation.exceptions import NoProviderAvailable
from generation_layer.generation.runner import UnifiedGenerationRunner
from generation_layer.llm.prompt_builder import PromptBuilder
from generation_layer.models.enums import OutputChannel, Role, SubtaskStatus, TaskPriority
from generation_layer.models.generation_models import GenerationRequest
from generation_layer.models.subtask_models import GeneratedTask
from generation_layer.models.telemetry_models import UsageTelemetry
from generation_layer.recovery.exceptions import MalformedOutput
from generation_layer.resources import load_schema
from generation_layer.retry.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

COMMAND_NAME = "parse-prd"
OBJECT_NAME = "tasks_data"


class ParsePrdResult(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    tasks: list[GeneratedTask] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    provider: str
    model_id: str
    telemetry: Optional[UsageTelemetry] = None


def _priority(value: Any) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        return TaskPriority.MEDIUM


def normalize_tasks(
    raw_tasks: list[dict[str, Any]],
    next_id: int,
    existing_ids: set[int],
) -> list[GeneratedTask]:
    """
    Renumber generated tasks from next_id and filter their dependencies.

    A dependency survives if it names an existing task, or a new task
    numbered in [next_id, own id).
    """
    tasks = []
    for index, raw in enumerate(raw_tasks):
        new_id = next_id + index
        dependencies = []
        for dep in raw.get("dependencies") or []:
            if dep in existing_ids or next_id <= dep < new_id:
                if dep not in dependencies:
                    dependencies.append(dep)
            else:
                logger.warning(
                    "Invalid task dependency removed",
                    task_title=raw.get("title"),
                    dependency=dep,
                )

        tasks.append(
            GeneratedTask(
                id=new_id,
                title=raw.get("title") or "",
                description=raw.get("description") or "",
                details=raw.get("details") or "",
                test_strategy=raw.get("testStrategy") or "",
                priority=_priority(raw.get("priority")),
                dependencies=dependencies,
                status=SubtaskStatus.PENDING.value,
            )
        )
    return tasks


async def parse_prd(
    runner: UnifiedGenerationRunner,
    prompt_builder: PromptBuilder,
    prd_text: str,
    num_tasks: Optional[int] = None,
    existing_tasks: Sequence[GeneratedTask] = (),
    use_research: bool = False,
    source_name: str = "prd.txt",
    channel: OutputChannel = OutputChannel.CLI,
    cancel_token: Optional[CancellationToken] = None,
) -> ParsePrdResult:
    """
    Generate top-level tasks from PRD text.

    Raises:
        ValueError: Empty PRD text
        NoProviderAvailable: No attempt produced a valid object
        MalformedOutput: Object carries no "tasks" array
    """
    if not prd_text or not prd_text.strip():
        raise ValueError("PRD content is empty")
    if num_tasks is None or num_tasks <= 0:
        num_tasks = runner.snapshot.default_num_tasks

    existing_ids = {t.id for t in existing_tasks}
    next_id = max(existing_ids) + 1 if existing_ids else 1
    role = Role.RESEARCH if use_research else Role.MAIN

    system_prompt, user_prompt = prompt_builder.build_prd_prompts(
        prd_text,
        num_tasks=num_tasks,
        next_id=next_id,
        source_name=source_name,
        use_research=use_research,
    )

    logger.info(
        "Parsing PRD",
        source=source_name,
        num_tasks=num_tasks,
        next_id=next_id,
        existing_tasks=len(existing_ids),
        role=role.value,
    )

    result = await runner.generate_object(
        GenerationRequest(
            role=role,
            prompt=user_prompt,
            system_prompt=system_prompt,
            schema=load_schema("prd_tasks_v1"),
            object_name=OBJECT_NAME,
            command_name=COMMAND_NAME,
            output_channel=channel,
        ),
        cancel_token=cancel_token,
    )
    if result is None:
        raise NoProviderAvailable("No provider could parse the PRD", role=role.value)

    data = result.parsed or {}
    raw_tasks = data.get("tasks")
    if not isinstance(raw_tasks, list):
        raise MalformedOutput('Generated object has no "tasks" array', raw_content=str(data))

    tasks = normalize_tasks(raw_tasks, next_id, existing_ids)
    logger.info("PRD parsed", generated=len(tasks), first_id=next_id, provider=result.provider)

    return ParsePrdResult(
        tasks=tasks,
        metadata=data.get("metadata") or {},
        provider=result.provider,
        model_id=result.model_id,
        telemetry=result.telemetry,
    )
