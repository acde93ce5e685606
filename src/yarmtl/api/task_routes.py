"""REST API routes for task operations."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from yarmtl.api.task_handlers import (
    handle_due,
    handle_tags,
    handle_task_add,
    handle_task_delete,
    handle_task_get,
    handle_task_list,
    handle_task_toggle,
    handle_task_update,
)
from yarmtl.errors import IoFailure, NotFound, ParseError, VersioningFailure
from yarmtl.models.patch import TaskPatch
from yarmtl.store.task_store import TaskStore


class TaskAddBody(BaseModel):
    text: str


def _raise_http(e: Exception) -> None:
    if isinstance(e, NotFound):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ParseError):
        raise HTTPException(status_code=400, detail={"kind": e.kind.value, "token": e.token, "message": str(e)})
    if isinstance(e, (IoFailure, VersioningFailure)):
        raise HTTPException(status_code=500, detail=str(e))
    raise e


def register_task_routes(app_router: APIRouter, store: TaskStore) -> None:
    """Attach task REST routes that use the shared store."""

    @app_router.get("/tasks")
    def list_tasks(
        include_done: bool = Query(True),
        tag: Optional[List[str]] = Query(None),
    ):
        try:
            return handle_task_list(store, include_done=include_done, tags=tag)
        except IoFailure as e:
            _raise_http(e)

    @app_router.get("/tasks/due")
    def due_tasks(today: Optional[date] = Query(None)):
        try:
            return handle_due(store, today=today)
        except IoFailure as e:
            _raise_http(e)

    @app_router.get("/tasks/{task_id}")
    def get_task(task_id: str):
        try:
            return handle_task_get(store, task_id=task_id)
        except (NotFound, IoFailure) as e:
            _raise_http(e)

    @app_router.post("/tasks", status_code=201)
    def add_task(body: TaskAddBody):
        try:
            return handle_task_add(store, text=body.text)
        except (ParseError, IoFailure, VersioningFailure) as e:
            _raise_http(e)

    @app_router.post("/tasks/{task_id}/toggle")
    def toggle_task(task_id: str):
        try:
            return handle_task_toggle(store, task_id=task_id)
        except (NotFound, IoFailure, VersioningFailure) as e:
            _raise_http(e)

    @app_router.patch("/tasks/{task_id}")
    def update_task(task_id: str, patch: TaskPatch):
        try:
            return handle_task_update(store, task_id=task_id, patch=patch)
        except (NotFound, ParseError, IoFailure, VersioningFailure) as e:
            _raise_http(e)

    @app_router.delete("/tasks/{task_id}")
    def delete_task(task_id: str):
        try:
            return handle_task_delete(store, task_id=task_id)
        except (NotFound, IoFailure, VersioningFailure) as e:
            _raise_http(e)

    @app_router.get("/tags")
    def list_tags():
        try:
            return handle_tags(store)
        except IoFailure as e:
            _raise_http(e)
