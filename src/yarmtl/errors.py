"""
Exception types raised by the parser and the task store.

ParseError is a user input problem and is raised before anything is written.
StoreError and its subclasses come from the store itself: a missing task id,
an unreadable/unwritable tasks file, or a git commit that could not be made.
"""

from enum import Enum
from typing import Optional


class ParseErrorKind(str, Enum):
    INVALID_DATE = "invalid-date"
    INVALID_IMPORTANCE = "invalid-importance"
    INVALID_TAG = "invalid-tag"
    EMPTY_DESCRIPTION = "empty-description"
    UNEXPECTED_TOKEN = "unexpected-token"


class ParseError(ValueError):
    """A metadata token in task text could not be understood."""

    def __init__(self, kind: ParseErrorKind, token: str, message: Optional[str] = None) -> None:
        self.kind = kind
        self.token = token
        super().__init__(message or f"{kind.value}: '{token}'")


class StoreError(Exception):
    """Base class for task store failures."""


class NotFound(StoreError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")


class IoFailure(StoreError):
    def __init__(self, message: str, cause: Optional[OSError] = None) -> None:
        self.cause = cause
        super().__init__(message)


class VersioningFailure(StoreError):
    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        super().__init__(f"{message}: {stderr}" if stderr else message)
