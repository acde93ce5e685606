"""
Core task data models.

The Task model captures all semantic information needed to reconstruct the
markdown task line via utils.formatting. TaskDocument keeps the task lines
interleaved with the surrounding prose so the whole file can be rewritten
without losing headings or comments.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from yarmtl.errors import ParseError, ParseErrorKind

TAG_RE = re.compile(r"^[A-Za-z0-9_-]+$")

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


def normalize_tag(tag: str) -> str:
    """Return the canonical (lower-cased) form of a tag, validating it."""
    tag = tag[1:] if tag.startswith("#") else tag
    if not TAG_RE.match(tag):
        raise ParseError(ParseErrorKind.INVALID_TAG, f"#{tag}")
    return tag.lower()


def validate_importance(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(ParseErrorKind.INVALID_IMPORTANCE, f"${value}")
    if not MIN_IMPORTANCE <= value <= MAX_IMPORTANCE:
        raise ParseError(ParseErrorKind.INVALID_IMPORTANCE, f"${value}")
    return value


@dataclass
class Task:
    """
    A single checkbox line from tasks.md.

    Equality covers the persisted fields only. indent_level, indent,
    line_number and parent_id describe where the line sits in the file:
    ``indent`` is the leading whitespace exactly as read (None for new tasks,
    which are indented two spaces per level), and ``parent_id`` is the id of
    the nearest less-indented task above it.
    """

    description: str
    id: Optional[str] = None
    done: bool = False
    deadline: Optional[date] = None
    reminder: Optional[date] = None
    tags: Set[str] = field(default_factory=set)
    notes: Optional[str] = None
    importance: Optional[int] = None
    indent_level: int = field(default=0, compare=False)
    line_number: int = field(default=0, compare=False)
    indent: Optional[str] = field(default=None, compare=False)
    parent_id: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        self.tags = {normalize_tag(t) for t in self.tags}
        if self.importance is not None:
            validate_importance(self.importance)
        if self.notes is not None:
            self.notes = self.notes.strip() or None
        if self.notes is not None and len(self.notes.splitlines()) > 1:
            raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, self.notes, "notes must fit on one line")

    def toggle_done(self) -> bool:
        """Flip the completion flag and return the new value."""
        self.done = not self.done
        return self.done

    def render(self) -> str:
        """Format the task as its canonical markdown line."""
        from yarmtl.utils.formatting import render_task

        return render_task(self)

    def matches_tag_filter(self, tag_filter: Optional[Iterable[str]]) -> bool:
        """
        True if the task carries any of the tags in ``tag_filter``.

        An empty or missing filter matches every task.
        """
        if not tag_filter:
            return True
        wanted = {t.lstrip("#").lower() for t in tag_filter}
        return bool(self.tags & wanted)

    def is_overdue(self, today: date) -> bool:
        return self.deadline is not None and self.deadline < today

    def is_due_today(self, today: date) -> bool:
        return self.deadline is not None and self.deadline == today

    def __str__(self) -> str:
        return self.render()


@dataclass
class TaskDocument:
    """
    A parsed tasks.md file.

    ``entries`` holds, in file order, either a Task or the verbatim text of a
    line that is not a task (headings, prose, blank lines).
    """

    entries: List[Union[Task, str]] = field(default_factory=list)
    file_path: Optional[Path] = None

    def tasks(self) -> List[Task]:
        return [e for e in self.entries if isinstance(e, Task)]

    def find_by_id(self, task_id: str) -> Optional[Task]:
        for task in self.tasks():
            if task.id == task_id:
                return task
        return None

    def task_ids(self) -> Set[str]:
        return {t.id for t in self.tasks() if t.id}

    def append(self, task: Task) -> None:
        self.entries.append(task)

    def remove(self, task_id: str) -> Optional[Task]:
        for i, entry in enumerate(self.entries):
            if isinstance(entry, Task) and entry.id == task_id:
                return self.entries.pop(i)
        return None

    def replace(self, task_id: str, task: Task) -> None:
        for i, entry in enumerate(self.entries):
            if isinstance(entry, Task) and entry.id == task_id:
                self.entries[i] = task
                return

    def insert_after(self, anchor: Task, task: Task) -> None:
        """Insert ``task`` right after the ``anchor`` entry (appended if anchor is gone)."""
        for i, entry in enumerate(self.entries):
            if entry is anchor:
                self.entries.insert(i + 1, task)
                return
        self.entries.append(task)

    def link_parents(self) -> None:
        """Set parent_id on every task from the indentation of the task lines above it."""
        stack: List[Task] = []
        for task in self.tasks():
            while stack and stack[-1].indent_level >= task.indent_level:
                stack.pop()
            task.parent_id = stack[-1].id if stack else None
            stack.append(task)

    def last_root_task(self) -> Optional[Task]:
        """The last task without a parent, i.e. the one a new subtask attaches to."""
        roots = [t for t in self.tasks() if t.parent_id is None]
        return roots[-1] if roots else None
