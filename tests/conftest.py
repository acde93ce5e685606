from datetime import date
from pathlib import Path

import pytest

from fakes import FakeVersioning
from yarmtl.store.task_store import TaskStore

TODAY = date(2025, 9, 29)


@pytest.fixture
def tasks_file(tmp_path) -> Path:
    return tmp_path / "tasks.md"


@pytest.fixture
def versioning() -> FakeVersioning:
    return FakeVersioning()


@pytest.fixture
def store(tasks_file, versioning) -> TaskStore:
    return TaskStore.load(tasks_file, versioning=versioning, today=TODAY, clock=lambda: TODAY)
