from .task_store import TaskStore, apply_patch

__all__ = ["TaskStore", "apply_patch"]
