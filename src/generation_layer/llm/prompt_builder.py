"""
Prompt builder for the generation features.

Responsible for:
- Loading and rendering Jinja2 templates (system + user prompts)
- Picking the research variant when the research role is requested
- Returning plain strings; the runner turns them into chat messages
"""

from pathlib import Path
from typing import Optional

import structlog
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from generation_layer.models.subtask_models import ParentTask
from generation_layer.resources import PROMPTS_DIR


logger = structlog.get_logger(__name__)


class PromptBuilder:
    """
    Render feature prompts from templates.

    Templates (in templates_dir):
    - expand_system.txt
    - expand_user.txt / expand_research_user.txt
    - prd_system.txt / prd_user.txt
    """

    def __init__(self, templates_dir: Optional[Path] = None):
        """
        Initialize prompt builder.

        Args:
            templates_dir: Directory containing prompt templates
                (default: packaged resources/prompts)
        """
        self.templates_dir = Path(templates_dir or PROMPTS_DIR)

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,  # Prompts, not HTML
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

        self.expand_system_template = self.jinja_env.get_template("expand_system.txt")
        self.expand_user_template = self.jinja_env.get_template("expand_user.txt")
        self.expand_research_template = self.jinja_env.get_template("expand_research_user.txt")
        self.prd_system_template = self.jinja_env.get_template("prd_system.txt")
        self.prd_user_template = self.jinja_env.get_template("prd_user.txt")

        logger.info("Loaded prompt templates", templates_dir=str(self.templates_dir))

    def build_expand_prompts(
        self,
        task: ParentTask,
        subtask_count: int,
        next_subtask_id: int,
        additional_context: str = "",
        use_research: bool = False,
    ) -> tuple[str, str]:
        """
        Render (system_prompt, user_prompt) for task expansion.

        Args:
            task: Parent task being broken down
            subtask_count: Number of subtasks to request
            next_subtask_id: First id the model should use
            additional_context: Free-form extra instructions
            use_research: Use the research user prompt
        """
        system_prompt = self.expand_system_template.render(subtask_count=subtask_count)
        template = self.expand_research_template if use_research else self.expand_user_template
        user_prompt = template.render(
            task=task,
            subtask_count=subtask_count,
            next_subtask_id=next_subtask_id,
            additional_context=additional_context,
        )

        logger.debug(
            "Rendered expand prompts",
            task_id=task.id,
            research=use_research,
            system_length=len(system_prompt),
            user_length=len(user_prompt),
        )
        return system_prompt, user_prompt

    def build_prd_prompts(
        self,
        prd_content: str,
        num_tasks: int,
        next_id: int,
        source_name: str = "prd.txt",
        use_research: bool = False,
    ) -> tuple[str, str]:
        """Render (system_prompt, user_prompt) for PRD ingestion."""
        system_prompt = self.prd_system_template.render(
            num_tasks=num_tasks, next_id=next_id, research=use_research
        )
        user_prompt = self.prd_user_template.render(
            prd_content=prd_content,
            num_tasks=num_tasks,
            next_id=next_id,
            source_name=source_name,
            research=use_research,
        )
        return system_prompt, user_prompt
