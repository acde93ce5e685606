from .task import Task, TaskDocument, normalize_tag, validate_importance
from .patch import TaskPatch

__all__ = [
    "Task",
    "TaskDocument",
    "TaskPatch",
    "normalize_tag",
    "validate_importance",
]
