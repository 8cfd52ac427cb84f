"""
Test fixtures for the Structured Generation Layer.

Raw model outputs the recovery parser must handle:
- fenced_subtasks.txt: subtasks object inside a ```json fence with prose around it
- bare_array_subtasks.txt: top-level array, wrong ids, empty dependencies slip
- prose_subtasks.txt: object embedded in an explanation, no fence
"""
