"""Task handler functions used by the REST API routes."""

import logging
from datetime import date
from typing import List, Optional

from yarmtl.models.patch import TaskPatch
from yarmtl.models.task import Task
from yarmtl.scheduler.queries import compose_reminders
from yarmtl.store.task_store import TaskStore
from yarmtl.utils.dates import format_date

log = logging.getLogger(__name__)


def task_to_dict(task: Task) -> dict:
    """Serialize a Task to a JSON-serializable dict."""
    return {
        "id": task.id,
        "description": task.description,
        "done": task.done,
        "deadline": format_date(task.deadline) if task.deadline else None,
        "reminder": format_date(task.reminder) if task.reminder else None,
        "tags": sorted(task.tags),
        "notes": task.notes,
        "importance": task.importance,
        "parent_id": task.parent_id,
        "line": task.render(),
    }


def handle_task_list(
    store: TaskStore,
    *,
    include_done: bool = True,
    tags: Optional[List[str]] = None,
) -> List[dict]:
    store.reload()
    return [task_to_dict(t) for t in store.list(include_done=include_done, tag_filter=tags)]


def handle_task_get(store: TaskStore, *, task_id: str) -> dict:
    store.reload()
    return task_to_dict(store.get(task_id))


def handle_task_add(store: TaskStore, *, text: str) -> dict:
    task = store.add(text)
    log.info("Added task %s via API", task.id)
    return task_to_dict(task)


def handle_task_toggle(store: TaskStore, *, task_id: str) -> dict:
    return task_to_dict(store.toggle(task_id))


def handle_task_update(store: TaskStore, *, task_id: str, patch: TaskPatch) -> dict:
    return task_to_dict(store.update_fields(task_id, patch))


def handle_task_delete(store: TaskStore, *, task_id: str) -> dict:
    return task_to_dict(store.delete(task_id))


def handle_due(store: TaskStore, *, today: Optional[date] = None) -> List[dict]:
    store.reload()
    today = today or date.today()
    return [
        dict(task_to_dict(r.task), reason=r.reason)
        for r in compose_reminders(store.list(include_done=False), today)
    ]


def handle_tags(store: TaskStore) -> List[str]:
    store.reload()
    return store.all_tags()
