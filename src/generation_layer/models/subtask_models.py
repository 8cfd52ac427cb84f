"""
Task and subtask models produced by the generation features.

Length constraints on titles/descriptions are enforced earlier, by the
JSON Schema stage of the recovery parser. These models only carry the
corrected data, so the correction pass can always build them.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from generation_layer.models.enums import SubtaskStatus, TaskPriority


class Subtask(BaseModel):
    """One generated subtask."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    description: str
    dependencies: list[int] = Field(default_factory=list)
    details: str
    status: str = SubtaskStatus.PENDING.value
    test_strategy: Optional[str] = Field(default=None, alias="testStrategy")


class SubtaskBatch(BaseModel):
    """
    Ordered subtasks produced by one generation call.

    Built by the correction pass; the caller owns it afterwards.
    """

    subtasks: list[Subtask] = Field(default_factory=list)
    start_id: int = 1
    expected_count: Optional[int] = None

    def __len__(self) -> int:
        return len(self.subtasks)

    def __iter__(self):
        return iter(self.subtasks)

    @property
    def ids(self) -> list[int]:
        return [s.id for s in self.subtasks]


class ParentTask(BaseModel):
    """Top-level task that the expansion feature breaks down."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    description: str = ""
    details: Optional[str] = None
    status: str = SubtaskStatus.PENDING.value
    subtasks: list[Subtask] = Field(default_factory=list)


class GeneratedTask(BaseModel):
    """Top-level task produced by PRD ingestion."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    description: str
    details: str = ""
    test_strategy: str = Field(default="", alias="testStrategy")
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: list[int] = Field(default_factory=list)
    status: str = SubtaskStatus.PENDING.value
