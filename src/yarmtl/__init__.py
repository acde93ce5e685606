"""
yarmtl - markdown todo list.

Main API:
    from yarmtl import TaskStore

    store = TaskStore.load(Path("tasks.md"), versioning=GitVersioning(Path(".")))
    task = store.add("Submit report !2025-10-01 #work")
    store.toggle(task.id)
    store.list(include_done=False, tag_filter={"work"})
"""

from .errors import (
    IoFailure,
    NotFound,
    ParseError,
    ParseErrorKind,
    StoreError,
    VersioningFailure,
)
from .models import Task, TaskDocument, TaskPatch
from .parsers import parse_metadata
from .store import TaskStore
from .versioning import GitVersioning

__version__ = "0.3.0"

__all__ = [
    # Models
    "Task",
    "TaskDocument",
    "TaskPatch",
    # Main API
    "TaskStore",
    "GitVersioning",
    "parse_metadata",
    # Errors
    "ParseError",
    "ParseErrorKind",
    "StoreError",
    "NotFound",
    "IoFailure",
    "VersioningFailure",
]
