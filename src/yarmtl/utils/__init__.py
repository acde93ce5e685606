from .dates import format_date, parse_iso_date, resolve_date
from .ids import generate_task_id, unique_task_id

__all__ = [
    "format_date",
    "parse_iso_date",
    "resolve_date",
    "generate_task_id",
    "unique_task_id",
]
