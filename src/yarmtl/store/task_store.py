"""
Markdown-backed task store.

Design:
    Source of truth:  tasks.md on disk
    In-memory view:   TaskDocument from the last load or mutation
    Writer exclusion: filelock.FileLock on tasks.md.lock (cross-process)
                       + threading.RLock (API worker threads, daemon thread)

Every mutation is a full read-modify-write cycle under the lock: the file is
re-read, the change applied, the whole file rewritten, and the change
committed through the versioning backend. If the commit fails the previous
file content is restored and the in-memory view is left untouched.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Set, Tuple, Union

from filelock import FileLock, Timeout

from yarmtl.errors import IoFailure, NotFound, ParseError, ParseErrorKind, VersioningFailure
from yarmtl.models.patch import TaskPatch
from yarmtl.models.task import Task, TaskDocument
from yarmtl.parsers.metadata import parse_metadata
from yarmtl.parsers.task_parser import new_document, parse_content, render_content, write_file
from yarmtl.scheduler import queries
from yarmtl.utils.formatting import INDENT
from yarmtl.utils.ids import unique_task_id
from yarmtl.versioning.git import Versioning

log = logging.getLogger(__name__)

_DEFAULT_LOCK_TIMEOUT = 10.0

SUBTASK_PREFIX = "<-"

Mutation = Callable[[TaskDocument, date], Tuple[Task, str]]


class TaskStore:
    """
    Ordered collection of tasks backed by a single markdown file.

    Create with TaskStore.load(path). Reads (list, get, queries) use the
    in-memory view; call reload() to pick up changes made by other processes.
    """

    def __init__(
        self,
        path: Path,
        *,
        versioning: Optional[Versioning] = None,
        lock_timeout: float = _DEFAULT_LOCK_TIMEOUT,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._path = Path(path)
        self._versioning = versioning
        self._clock = clock
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self._lock_path), timeout=lock_timeout)
        self._document: TaskDocument = new_document(self._path)
        self._retired_ids: Set[str] = set()

    @classmethod
    def load(
        cls,
        path: Path,
        *,
        versioning: Optional[Versioning] = None,
        today: Optional[date] = None,
        **kwargs: Any,
    ) -> "TaskStore":
        """
        Open the store at ``path``.

        An absent file is an empty store; it is created on the first save.

        Raises:
            IoFailure: if the file exists but cannot be read
        """
        store = cls(path, versioning=versioning, **kwargs)
        store.reload(today)
        return store

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def _lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    # ------------------------------------------------------------------
    # Locking and raw file access
    # ------------------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold both the in-process lock and the cross-process file lock."""
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._file_lock.acquire()
            except Timeout as e:
                raise IoFailure(f"Timed out waiting for lock {self._lock_path}") from e
            except OSError as e:
                raise IoFailure(f"Cannot create lock {self._lock_path}: {e}", e) from e
            try:
                yield
            finally:
                self._file_lock.release()

    def _read_text(self) -> Optional[str]:
        """Current file content, or None if the file does not exist."""
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise IoFailure(f"Cannot read {self._path}: {e}") from e

    def _write_document(self, document: TaskDocument) -> None:
        try:
            write_file(self._path, document)
        except OSError as e:
            raise IoFailure(f"Cannot write {self._path}: {e}", e) from e

    def _restore(self, previous_text: Optional[str]) -> None:
        """Put the file back the way it was before a failed mutation."""
        try:
            if previous_text is None:
                self._path.unlink(missing_ok=True)
            else:
                self._path.write_text(previous_text, encoding="utf-8")
        except OSError:
            log.exception("Failed to restore %s after versioning failure", self._path)

    def _parse(self, text: Optional[str], today: date) -> Tuple[TaskDocument, bool]:
        """Parse file text, assigning ids to tasks that lack a unique one."""
        if text is None:
            return new_document(self._path), False

        document = parse_content(text, today, self._path)
        repaired = self._assign_missing_ids(document)
        if repaired:
            document.link_parents()
        return document, repaired

    def _assign_missing_ids(self, document: TaskDocument) -> bool:
        seen: Set[str] = set()
        taken = document.task_ids() | self._retired_ids
        repaired = False
        for task in document.tasks():
            if task.id and task.id not in seen:
                seen.add(task.id)
                continue
            if task.id:
                log.warning("Duplicate task id %s on line %d, assigning a new one", task.id, task.line_number + 1)
            task.id = unique_task_id(taken)
            taken.add(task.id)
            seen.add(task.id)
            repaired = True
        return repaired

    def _record(self, message: str) -> None:
        if self._versioning is None:
            return
        self._versioning.commit_change(self._path, message)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def reload(self, today: Optional[date] = None) -> None:
        """
        Re-read tasks.md, replacing the in-memory view.

        Tasks without an id (or with a duplicated one) get a fresh id, which
        is written back and committed straight away so ids stay stable across
        processes.
        """
        today = today or self._clock()
        with self._exclusive():
            text = self._read_text()
            document, repaired = self._parse(text, today)

            if repaired:
                try:
                    self._write_document(document)
                    self._record("Assigned task ids")
                except IoFailure:
                    log.warning("Could not persist assigned task ids to %s", self._path)
                except VersioningFailure as e:
                    log.warning("Could not commit assigned task ids: %s", e)

            self._document = document

    # ------------------------------------------------------------------
    # Mutations (write-through to disk)
    # ------------------------------------------------------------------

    def _mutate(self, mutation: Mutation, today: Optional[date] = None) -> Task:
        today = today or self._clock()
        with self._exclusive():
            previous_text = self._read_text()
            document, _ = self._parse(previous_text, today)

            task, message = mutation(document, today)

            self._write_document(document)
            try:
                self._record(message)
            except VersioningFailure:
                log.warning("Rolling back %s: %s", self._path, message)
                self._restore(previous_text)
                raise

            self._document = document
            return copy.deepcopy(task)

    def add(self, raw_text: str, today: Optional[date] = None) -> Task:
        """
        Parse ``raw_text`` and append it as a new open task.

        Text starting with ``<-`` becomes a subtask of the last top-level
        task: it is indented one level under it and placed after that task's
        existing subtasks.

        Raises:
            ParseError: if the text has a malformed token or no description,
                or is a subtask and there is no task to attach it to
        """
        text = raw_text.strip()
        is_subtask = text.startswith(SUBTASK_PREFIX)
        if is_subtask:
            text = text[len(SUBTASK_PREFIX):]

        parsed = parse_metadata(text, today or self._clock())
        if not parsed.description:
            raise ParseError(ParseErrorKind.EMPTY_DESCRIPTION, raw_text.strip())

        def apply(document: TaskDocument, _today: date) -> Tuple[Task, str]:
            task = Task(
                description=parsed.description,
                id=unique_task_id(document.task_ids() | self._retired_ids),
                deadline=parsed.deadline,
                reminder=parsed.reminder,
                tags=set(parsed.tags),
                notes=parsed.notes,
                importance=parsed.importance,
            )
            if is_subtask:
                return self._attach_subtask(document, task), f'Added subtask: "{task.description}"'
            document.append(task)
            return task, f'Added task: "{task.description}"'

        return self._mutate(apply, today)

    def toggle(self, task_id: str) -> Task:
        """
        Flip the completion flag of a task.

        Raises:
            NotFound: if no task has this id
        """
        def apply(document: TaskDocument, _today: date) -> Tuple[Task, str]:
            task = self._require(document, task_id)
            action = "Marked task complete" if task.toggle_done() else "Marked task incomplete"
            return task, f'{action}: "{task.description}"'

        return self._mutate(apply)

    def delete(self, task_id: str) -> Task:
        """
        Remove a task. Its id is never handed out again by this store.

        Raises:
            NotFound: if no task has this id
        """
        def apply(document: TaskDocument, _today: date) -> Tuple[Task, str]:
            self._require(document, task_id)
            task = document.remove(task_id)
            return task, f'Deleted task: "{task.description}"'

        removed = self._mutate(apply)
        self._retired_ids.add(task_id)
        return removed

    def update_fields(
        self,
        task_id: str,
        patch: Union[TaskPatch, Mapping[str, Any]],
        today: Optional[date] = None,
    ) -> Task:
        """
        Apply a partial update to a task and re-validate it.

        Args:
            task_id: Task to change
            patch: TaskPatch (or a dict accepted by it)

        Raises:
            NotFound: if no task has this id
            ParseError: if the new description is empty or contains metadata tokens
            pydantic.ValidationError: if a dict patch has invalid values
        """
        if not isinstance(patch, TaskPatch):
            patch = TaskPatch.model_validate(patch)

        def apply(document: TaskDocument, today_: date) -> Tuple[Task, str]:
            current = self._require(document, task_id)
            updated = apply_patch(current, patch, today_)
            document.replace(task_id, updated)
            return updated, f'Updated task: "{updated.description}"'

        return self._mutate(apply, today)

    @staticmethod
    def _attach_subtask(document: TaskDocument, task: Task) -> Task:
        parent = document.last_root_task()
        if parent is None:
            raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, SUBTASK_PREFIX, "no task to add a subtask to")

        parent_indent = parent.indent if parent.indent is not None else INDENT * parent.indent_level
        task.indent = parent_indent + INDENT
        task.indent_level = parent.indent_level + 1
        task.parent_id = parent.id
        document.insert_after(document.tasks()[-1], task)
        return task

    @staticmethod
    def _require(document: TaskDocument, task_id: str) -> Task:
        task = document.find_by_id(task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> Task:
        with self._lock:
            return copy.deepcopy(self._require(self._document, task_id))

    def list(self, include_done: bool = True, tag_filter: Optional[Iterable[str]] = None) -> List[Task]:
        """
        Tasks in on-disk order.

        Args:
            include_done: Include completed tasks
            tag_filter: Keep tasks sharing at least one of these tags
        """
        tag_filter = set(tag_filter) if tag_filter else None
        with self._lock:
            return [
                copy.deepcopy(task)
                for task in self._document.tasks()
                if (include_done or not task.done) and task.matches_tag_filter(tag_filter)
            ]

    def all_tags(self) -> List[str]:
        with self._lock:
            return sorted({tag for task in self._document.tasks() for tag in task.tags})

    def due_or_overdue(self, today: Optional[date] = None) -> List[Task]:
        return queries.due_or_overdue(self.list(), today or self._clock())

    def reminders_today(self, today: Optional[date] = None) -> List[Task]:
        return queries.reminders_today(self.list(), today or self._clock())

    def render(self) -> str:
        """The file content the current in-memory view would be written as."""
        with self._lock:
            return render_content(self._document)


def apply_patch(task: Task, patch: TaskPatch, today: date) -> Task:
    """Return a copy of ``task`` with ``patch`` applied and validated."""
    changes = {
        name: getattr(patch, name)
        for name in patch.model_fields_set - {"clear"}
        if getattr(patch, name) is not None
    }

    if "description" in changes:
        parsed = parse_metadata(changes["description"], today)
        if parsed.has_metadata:
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN,
                changes["description"],
                "description must not contain metadata tokens",
            )
        if not parsed.description:
            raise ParseError(ParseErrorKind.EMPTY_DESCRIPTION, changes["description"])
        changes["description"] = parsed.description

    if "tags" in changes:
        changes["tags"] = set(changes["tags"])

    for name in patch.clear:
        changes[name] = set() if name == "tags" else None

    return replace(copy.deepcopy(task), **changes)
