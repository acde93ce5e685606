"""
Canonical markdown rendering for task lines.

This module is the single source of truth for how a task is written back to
tasks.md. Whatever order the metadata tokens were typed in, a task is always
rendered as:

    - [ ] <description> [id:<id>] !<deadline> #<tag>... @<reminder> $<importance> //<notes>

Tags are sorted so the output is stable. Notes always come last because
everything after ``//`` is read back as notes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from yarmtl.utils.dates import format_date

if TYPE_CHECKING:
    from yarmtl.models.task import Task

INDENT = "  "


def render_checkbox(done: bool) -> str:
    return "[x]" if done else "[ ]"


def render_id(task_id: str) -> str:
    return f"[id:{task_id}]"


def render_metadata(task: Task) -> List[str]:
    """Return the metadata tokens of a task in canonical order."""
    tokens = []
    if task.id:
        tokens.append(render_id(task.id))
    if task.deadline is not None:
        tokens.append(f"!{format_date(task.deadline)}")
    tokens.extend(f"#{tag}" for tag in sorted(task.tags))
    if task.reminder is not None:
        tokens.append(f"@{format_date(task.reminder)}")
    if task.importance is not None:
        tokens.append(f"${task.importance}")
    if task.notes:
        tokens.append(f"//{task.notes}")
    return tokens


def render_task(task: Task) -> str:
    """
    Render a task to a single markdown line.

    Args:
        task: Task to format

    Returns:
        Markdown line without a trailing newline
    """
    parts = [render_checkbox(task.done)]
    if task.description:
        parts.append(task.description)
    parts.extend(render_metadata(task))
    indent = task.indent if task.indent is not None else INDENT * task.indent_level
    return f"{indent}- {' '.join(parts)}"
