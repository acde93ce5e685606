"""
Parser for tasks.md files.

Main API:
    parse_content(content, today)  -> TaskDocument
    parse_file(path, today)        -> TaskDocument
    render_content(document)       -> str
    write_file(path, document)     -> None

Only lines of the form ``- [ ] ...`` / ``- [x] ...`` (optionally indented)
are parsed as tasks. Every other line, and any task line whose metadata
cannot be parsed, is kept verbatim so rewriting the file never loses text.
Leading whitespace of task lines is kept as typed; the indent level derived
from it (2 spaces or half a tab per level) only drives parent links.
"""

import logging
import os
import re
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from yarmtl.errors import ParseError
from yarmtl.models.task import Task, TaskDocument
from yarmtl.parsers.metadata import parse_metadata
from yarmtl.utils.formatting import INDENT

log = logging.getLogger(__name__)

TASKS_FILE_NAME = "tasks.md"
DEFAULT_HEADER = ["# tasks", ""]

_TASK_LINE_RE = re.compile(r"^(\s*)- \[([ xX])\](?: (.*))?$")


def _indent_level(indent_str: str) -> int:
    """Convert a leading-whitespace string to a 0-based indent level (2 spaces each)."""
    spaces = len(indent_str.replace("\t", INDENT * 2))
    return spaces // len(INDENT)


def parse_task_line(line: str, today: date, line_number: int = 0) -> Optional[Task]:
    """
    Parse a single markdown line.

    Returns:
        Task, or None if the line is not a checkbox item

    Raises:
        ParseError: if the line is a checkbox item with malformed metadata
    """
    m = _TASK_LINE_RE.match(line)
    if not m:
        return None

    parsed = parse_metadata(m.group(3) or "", today, allow_id=True)
    return Task(
        description=parsed.description,
        id=parsed.task_id,
        done=m.group(2).lower() == "x",
        deadline=parsed.deadline,
        reminder=parsed.reminder,
        tags=parsed.tags,
        notes=parsed.notes,
        importance=parsed.importance,
        indent_level=_indent_level(m.group(1)),
        indent=m.group(1),
        line_number=line_number,
    )


def parse_content(content: str, today: date, file_path: Optional[Path] = None) -> TaskDocument:
    """
    Parse markdown content into a TaskDocument.

    Args:
        content: Full file content as a string
        today: Reference date for relative keywords left in the file
        file_path: Source path (stored on the document for reference)

    Returns:
        TaskDocument with task and prose entries in file order
    """
    entries: List[Union[Task, str]] = []

    for line_number, line in enumerate(content.splitlines()):
        try:
            task = parse_task_line(line, today, line_number)
        except ParseError as e:
            log.warning("Keeping unparseable task line %d as text (%s): %s", line_number + 1, e, line)
            task = None

        entries.append(task if task is not None else line)

    document = TaskDocument(entries=entries, file_path=file_path)
    document.link_parents()
    return document


def parse_file(file_path: Path, today: date) -> TaskDocument:
    """Parse a tasks.md file into a TaskDocument."""
    return parse_content(file_path.read_text(encoding="utf-8"), today, file_path)


def new_document(file_path: Optional[Path] = None) -> TaskDocument:
    """An empty document carrying the default ``# tasks`` header."""
    return TaskDocument(entries=list(DEFAULT_HEADER), file_path=file_path)


def render_content(document: TaskDocument) -> str:
    lines = [e.render() if isinstance(e, Task) else e for e in document.entries]
    return "\n".join(lines) + "\n" if lines else ""


def write_file(file_path: Path, document: TaskDocument) -> None:
    """
    Serialize a TaskDocument back to disk.

    The content goes to a sibling temp file first and is then renamed over the
    target, so readers never see a half-written file.
    """
    tmp_path = file_path.with_name(f".{file_path.name}.tmp")
    tmp_path.write_text(render_content(document), encoding="utf-8")
    os.replace(tmp_path, file_path)
