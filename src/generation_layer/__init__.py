"""
Structured Generation Layer for the task management toolchain.

Turns natural-language instructions into validated, schema-conformant
task/subtask batches:
- Role-based model selection with ordered fallback
- Bounded retry with exponential backoff for transient backend failures
- Multi-strategy recovery of JSON batches from noisy model output
- Post-parse batch correction (ids, dependencies, status)

Architecture: unified generation runner + pluggable model backends + recovery parser
"""

__version__ = "0.1.0"
