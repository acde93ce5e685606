from .metadata import ParsedText, parse_metadata
from .task_parser import (
    TASKS_FILE_NAME,
    new_document,
    parse_content,
    parse_file,
    parse_task_line,
    render_content,
    write_file,
)

__all__ = [
    "ParsedText",
    "parse_metadata",
    "TASKS_FILE_NAME",
    "new_document",
    "parse_content",
    "parse_file",
    "parse_task_line",
    "render_content",
    "write_file",
]
