"""REST API for the task store, served by ``yarmtl serve``."""

from fastapi import APIRouter, FastAPI

from yarmtl import __version__
from yarmtl.api.task_routes import register_task_routes
from yarmtl.store.task_store import TaskStore


def create_app(store: TaskStore) -> FastAPI:
    """
    FastAPI app with every task route mounted under ``/api``.

    The store is shared by all request threads; it serialises writers itself.
    """
    app = FastAPI(
        title="yarmtl",
        version=__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )

    router = APIRouter(prefix="/api")
    register_task_routes(router, store)
    app.include_router(router)

    return app
