"""
Extraction strategies for subtask batches.

Each strategy is a pure function `(text) -> list | None`: it returns the raw
`subtasks` list when it can pull one out of the text, and None otherwise.
The parser tries them in RECOVERY_STRATEGIES order; the first non-None
result wins.
"""

import json
import re
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

RecoveryStrategy = Callable[[str], Optional[list[Any]]]

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_ARRAY_START = re.compile(r"^\s*\[\s*\{")
_EMBEDDED_BLOCK = re.compile(r'\{\s*"subtasks":\s*\[[\s\S]*?\]\s*\}')


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("JSON decode failed", error=e.msg, line=e.lineno, col=e.colno)
        return None


def _subtasks_of(parsed: Any) -> Optional[list[Any]]:
    if isinstance(parsed, dict) and isinstance(parsed.get("subtasks"), list):
        return parsed["subtasks"]
    return None


def fenced_or_plain(text: str) -> Optional[list[Any]]:
    """Parse the first ``` / ```json fenced block, or the whole text if there is none."""
    match = _CODE_FENCE.search(text)
    candidate = match.group(1).strip() if match and match.group(1) else text
    return _subtasks_of(_loads(candidate))


def bare_array(text: str) -> Optional[list[Any]]:
    """Accept a top-level array of objects as the subtasks list."""
    if not _BARE_ARRAY_START.match(text):
        return None
    return _subtasks_of(_loads(f'{{"subtasks": {text}}}'))


def embedded_block(text: str) -> Optional[list[Any]]:
    """Find a {"subtasks": [...]} object embedded in surrounding prose."""
    match = _EMBEDDED_BLOCK.search(text)
    if not match:
        return None
    return _subtasks_of(_loads(match.group(0)))


RECOVERY_STRATEGIES: tuple[tuple[str, RecoveryStrategy], ...] = (
    ("fenced_or_plain", fenced_or_plain),
    ("bare_array", bare_array),
    ("embedded_block", embedded_block),
)
