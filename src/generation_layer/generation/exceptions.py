"""
Generation-level exceptions.

The runner itself never raises NoProviderAvailable: it returns None when
every attempt was skipped or failed. Feature code that needs a result
converts that None into this exception.
"""

from typing import Optional

from generation_layer.retry.exceptions import GenerationCancelled


class NoProviderAvailable(Exception):
    """No attempt in the sequence produced a result."""

    def __init__(self, message: str = "No configured provider produced a result", role: Optional[str] = None):
        super().__init__(message)
        self.role = role


__all__ = ["GenerationCancelled", "NoProviderAvailable"]
