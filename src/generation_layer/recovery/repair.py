"""Textual repairs applied to raw model output before any JSON parsing."""

import re

import structlog

logger = structlog.get_logger(__name__)

# "dependencies": ,  ->  "dependencies": [],
_EMPTY_DEPENDENCIES = re.compile(r'"dependencies":\s*,')


def repair_text(raw_text: str) -> str:
    """Fix known model slips that make otherwise valid JSON unparseable."""
    repaired, count = _EMPTY_DEPENDENCIES.subn('"dependencies": [],', raw_text)
    if count:
        logger.info("Repaired empty dependencies values", count=count)
    return repaired.strip()
