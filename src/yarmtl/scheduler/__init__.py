from .queries import (
    Reminder,
    compose_reminders,
    due_or_overdue,
    group_by_deadline,
    reminder_reason,
    reminders_today,
)

__all__ = [
    "Reminder",
    "compose_reminders",
    "due_or_overdue",
    "group_by_deadline",
    "reminder_reason",
    "reminders_today",
]
