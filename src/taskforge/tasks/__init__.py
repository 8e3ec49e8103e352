"""Task definitions and the task registry."""

from taskforge.tasks.definition import Parameter, TaskDefinition
from taskforge.tasks.registry import TaskRegistry

__all__ = [
    "Parameter",
    "TaskDefinition",
    "TaskRegistry",
]
