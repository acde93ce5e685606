"""
Date-driven task queries used by the daemon and the list views.

All functions are pure: they take tasks and a reference date and return new
lists in the order the tasks were given (store order), apart from the
UPCOMING group which is sorted by deadline.
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Tuple

from yarmtl.models.task import Task

OVERDUE_AND_TODAY = "OVERDUE & TODAY"
UPCOMING = "UPCOMING"
NO_DEADLINE = "NO DEADLINE"

REASON_OVERDUE = "deadline overdue"
REASON_DUE_TODAY = "deadline due today"
REASON_REMINDER = "reminder date reached"


@dataclass
class Reminder:
    """A task that should be mentioned in today's notification, and why."""

    task: Task
    reason: str


def due_or_overdue(tasks: Iterable[Task], today: date) -> List[Task]:
    """Open tasks whose deadline is today or earlier."""
    return [t for t in tasks if not t.done and t.deadline is not None and t.deadline <= today]


def reminders_today(tasks: Iterable[Task], today: date) -> List[Task]:
    """Tasks whose reminder date is exactly today."""
    return [t for t in tasks if t.reminder is not None and t.reminder == today]


def reminder_reason(task: Task, today: date) -> str:
    if task.is_overdue(today):
        return REASON_OVERDUE
    if task.is_due_today(today):
        return REASON_DUE_TODAY
    return REASON_REMINDER


def compose_reminders(tasks: Iterable[Task], today: date) -> List[Reminder]:
    """
    Merge due/overdue tasks and today's reminders into one notification list.

    Each task appears once, in store order. Completed tasks are left out even
    if their reminder is today.
    """
    tasks = list(tasks)
    due_ids = {id(t) for t in due_or_overdue(tasks, today)}
    reminder_ids = {id(t) for t in reminders_today(tasks, today)}

    return [
        Reminder(task=t, reason=reminder_reason(t, today))
        for t in tasks
        if not t.done and (id(t) in due_ids or id(t) in reminder_ids)
    ]


def group_by_deadline(tasks: Iterable[Task], today: date) -> List[Tuple[str, List[Task]]]:
    """
    Split tasks into the list-view groups.

    Returns:
        [(group_name, tasks)] in the order OVERDUE & TODAY, UPCOMING,
        NO DEADLINE, leaving out empty groups
    """
    overdue_today: List[Task] = []
    upcoming: List[Task] = []
    no_deadline: List[Task] = []

    for task in tasks:
        if task.deadline is None:
            no_deadline.append(task)
        elif task.deadline <= today:
            overdue_today.append(task)
        else:
            upcoming.append(task)

    upcoming.sort(key=lambda t: t.deadline)

    groups = [
        (OVERDUE_AND_TODAY, overdue_today),
        (UPCOMING, upcoming),
        (NO_DEADLINE, no_deadline),
    ]
    return [(name, group) for name, group in groups if group]
