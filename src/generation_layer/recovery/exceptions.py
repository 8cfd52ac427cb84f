"""
Recovery parser exceptions.

Raised when raw model text cannot be turned into a valid subtask batch.
The correction pass never raises; only extraction and schema validation do.
"""

from typing import Any, Optional


class MalformedOutput(Exception):
    """
    Model output could not be recovered.

    Attributes:
        message: Human-readable error description
        preview: First 500 chars of the raw output (for debugging)
        details: Structured error data for logging
    """

    def __init__(
        self,
        message: str,
        raw_content: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        # Include first 500 chars for debugging, avoid excessive logging
        self.preview = raw_content[:500] if isinstance(raw_content, str) else None
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SubtaskSchemaError(MalformedOutput):
    """
    Extracted batch failed JSON Schema validation.

    No partial acceptance: one bad element rejects the whole batch.
    """

    def __init__(
        self,
        message: str,
        validation_errors: Optional[list[str]] = None,
        raw_content: Optional[str] = None,
    ):
        details: dict[str, Any] = {}
        if validation_errors:
            details["validation_errors"] = validation_errors
        super().__init__(message, raw_content=raw_content, details=details)
        self.validation_errors = validation_errors or []
