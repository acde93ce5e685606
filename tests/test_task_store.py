"""
Tests for store/task_store.py.

Covers:
- load: absent file, prose preserved, id repair written back and committed
- add / toggle / delete / update_fields persist and commit
- Subtasks added with "<-"
- IoFailure for unreadable, undecodable and unwritable files and lock timeouts
- list: on-disk order, done filter, tag filter
- Rollback when the commit fails
- Two stores on the same file never lose each other's writes
"""

import threading
from datetime import date

import pytest
from filelock import FileLock

from conftest import TODAY
from fakes import FakeVersioning
from yarmtl.errors import IoFailure, NotFound, ParseError, ParseErrorKind, VersioningFailure
from yarmtl.models.patch import TaskPatch
from yarmtl.models.task import Task
from yarmtl.store.task_store import TaskStore, apply_patch


def _open(path, versioning=None) -> TaskStore:
    return TaskStore.load(path, versioning=versioning, today=TODAY, clock=lambda: TODAY)


# ---------------------------------------------------------------------------
# load
# ---------------------------------------------------------------------------

class TestLoad:
    def test_absent_file_is_empty(self, store, tasks_file):
        assert store.list() == []
        assert not tasks_file.exists()

    def test_first_save_creates_file_with_header(self, store, tasks_file):
        task = store.add("Buy milk")
        assert tasks_file.read_text(encoding="utf-8") == f"# tasks\n\n- [ ] Buy milk [id:{task.id}]\n"

    def test_creates_parent_directory(self, tmp_path):
        store = _open(tmp_path / "nested" / "tasks.md")
        store.add("Thing")
        assert (tmp_path / "nested" / "tasks.md").exists()

    def test_prose_preserved_across_mutation(self, tasks_file, versioning):
        tasks_file.write_text(
            "# My list\n"
            "Intro paragraph.\n"
            "- [ ] First [id:00000001]\n",
            encoding="utf-8",
        )
        store = _open(tasks_file, versioning)
        store.toggle("00000001")

        assert tasks_file.read_text(encoding="utf-8") == (
            "# My list\n"
            "Intro paragraph.\n"
            "- [x] First [id:00000001]\n"
        )

    def test_missing_and_duplicate_ids_repaired(self, tasks_file, versioning):
        tasks_file.write_text(
            "- [ ] No id\n"
            "- [ ] Dup one [id:00000001]\n"
            "- [ ] Dup two [id:00000001]\n",
            encoding="utf-8",
        )
        store = _open(tasks_file, versioning)

        ids = [t.id for t in store.list()]
        assert len(set(ids)) == 3
        assert ids[1] == "00000001"
        assert all(ids)
        assert versioning.messages == ["Assigned task ids"]

        reloaded = _open(tasks_file)
        assert [t.id for t in reloaded.list()] == ids

    def test_no_repair_no_write(self, tasks_file, versioning):
        tasks_file.write_text("- [ ] Fine [id:00000001]\n", encoding="utf-8")
        _open(tasks_file, versioning)
        assert versioning.commits == []

    def test_repair_commit_failure_is_not_raised(self, tasks_file):
        tasks_file.write_text("- [ ] No id\n", encoding="utf-8")
        store = _open(tasks_file, FakeVersioning(fail_commit=True))
        assert store.list()[0].id


# ---------------------------------------------------------------------------
# add
# ---------------------------------------------------------------------------

class TestAdd:
    def test_add_then_list(self, store):
        task = store.add("Submit report !2025-10-01 #work")

        tasks = store.list(include_done=True)
        assert len(tasks) == 1
        assert tasks[0] == task
        assert tasks[0].description == "Submit report"
        assert tasks[0].deadline == date(2025, 10, 1)
        assert tasks[0].tags == {"work"}
        assert tasks[0].done is False

    def test_add_commits(self, store, versioning, tasks_file):
        store.add("Submit report !2025-10-01 #work")
        assert versioning.messages == ['Added task: "Submit report"']
        assert versioning.commits[0][0] == tasks_file

    def test_ids_unique(self, store):
        ids = {store.add(f"Task {i}").id for i in range(20)}
        assert len(ids) == 20
        assert all(len(i) == 8 for i in ids)

    def test_relative_dates_use_store_clock(self, store):
        task = store.add("Call dentist !tomorrow @today #personal")
        assert task.deadline == date(2025, 9, 30)
        assert task.reminder == TODAY

    def test_bad_importance_adds_nothing(self, store, versioning, tasks_file):
        with pytest.raises(ParseError) as exc_info:
            store.add("$9 bad importance")
        assert exc_info.value.kind == ParseErrorKind.INVALID_IMPORTANCE
        assert store.list() == []
        assert versioning.commits == []
        assert not tasks_file.exists()

    def test_empty_description_rejected(self, store):
        with pytest.raises(ParseError) as exc_info:
            store.add("#work !today")
        assert exc_info.value.kind == ParseErrorKind.EMPTY_DESCRIPTION

    def test_line_break_in_notes_adds_nothing(self, store, versioning, tasks_file):
        with pytest.raises(ParseError):
            store.add("Buy milk //line1\n- [ ] injected")
        assert store.list() == []
        assert versioning.commits == []
        assert not tasks_file.exists()

    def test_returned_task_is_a_copy(self, store):
        task = store.add("Thing")
        task.description = "changed"
        assert store.get(task.id).description == "Thing"


# ---------------------------------------------------------------------------
# toggle / delete
# ---------------------------------------------------------------------------

class TestToggleDelete:
    def test_toggle_twice(self, store, versioning):
        task = store.add("Thing")

        assert store.toggle(task.id).done is True
        assert store.get(task.id).done is True
        assert store.toggle(task.id).done is False
        assert versioning.messages[1:] == [
            'Marked task complete: "Thing"',
            'Marked task incomplete: "Thing"',
        ]

    def test_toggle_persists(self, store, tasks_file):
        task = store.add("Thing")
        store.toggle(task.id)
        assert _open(tasks_file).get(task.id).done is True

    def test_toggle_unknown(self, store):
        with pytest.raises(NotFound) as exc_info:
            store.toggle("ffffffff")
        assert exc_info.value.task_id == "ffffffff"

    def test_delete_then_not_found(self, store, versioning):
        task = store.add("Thing")
        store.delete(task.id)

        assert store.list() == []
        assert versioning.messages[-1] == 'Deleted task: "Thing"'
        with pytest.raises(NotFound):
            store.toggle(task.id)
        with pytest.raises(NotFound):
            store.delete(task.id)
        with pytest.raises(NotFound):
            store.get(task.id)

    def test_delete_keeps_other_lines(self, store, tasks_file):
        a = store.add("A")
        b = store.add("B")
        store.delete(a.id)
        assert tasks_file.read_text(encoding="utf-8") == f"# tasks\n\n- [ ] B [id:{b.id}]\n"


# ---------------------------------------------------------------------------
# update_fields
# ---------------------------------------------------------------------------

class TestUpdateFields:
    def test_partial_update(self, store, versioning):
        task = store.add("Submit report !2025-10-01 #work //draft")
        updated = store.update_fields(task.id, TaskPatch(importance=2, tags={"work", "q3"}))

        assert updated.importance == 2
        assert updated.tags == {"work", "q3"}
        assert updated.deadline == date(2025, 10, 1)
        assert updated.notes == "draft"
        assert store.get(task.id) == updated
        assert versioning.messages[-1] == 'Updated task: "Submit report"'

    def test_dict_patch_and_clear(self, store):
        task = store.add("Thing !2025-10-01 @2025-09-30 #a $3 //n")
        updated = store.update_fields(task.id, {"clear": ["deadline", "tags", "notes"], "reminder": "2025-10-05"})

        assert updated.deadline is None
        assert updated.tags == set()
        assert updated.notes is None
        assert updated.reminder == date(2025, 10, 5)
        assert updated.importance == 3

    def test_description_change(self, store, tasks_file):
        task = store.add("Old  name #x")
        store.update_fields(task.id, TaskPatch(description="  New   name "))
        assert _open(tasks_file).get(task.id).description == "New name"

    def test_description_with_tokens_rejected(self, store):
        task = store.add("Thing")
        with pytest.raises(ParseError) as exc_info:
            store.update_fields(task.id, TaskPatch(description="Thing #sneaky"))
        assert exc_info.value.kind == ParseErrorKind.UNEXPECTED_TOKEN
        assert store.get(task.id).tags == set()

    def test_empty_description_rejected(self, store):
        task = store.add("Thing")
        with pytest.raises(ParseError):
            store.update_fields(task.id, TaskPatch(description="   "))

    def test_unknown_id(self, store):
        with pytest.raises(NotFound):
            store.update_fields("ffffffff", TaskPatch(done=True))

    def test_multiline_notes_rejected(self, store, tasks_file):
        task = store.add("Thing")
        before = tasks_file.read_text(encoding="utf-8")

        with pytest.raises(ParseError):
            store.update_fields(task.id, TaskPatch(notes="ok\n- [ ] injected"))

        assert tasks_file.read_text(encoding="utf-8") == before
        assert [t.description for t in _open(tasks_file).list()] == ["Thing"]

    def test_update_keeps_hand_indentation(self, tasks_file):
        tasks_file.write_text(
            "- [ ] Parent [id:00000001]\n"
            "\t- [ ] Child [id:00000002]\n",
            encoding="utf-8",
        )
        store = _open(tasks_file)
        store.update_fields("00000001", TaskPatch(importance=1))

        assert tasks_file.read_text(encoding="utf-8") == (
            "- [ ] Parent [id:00000001] $1\n"
            "\t- [ ] Child [id:00000002]\n"
        )

    def test_apply_patch_leaves_original(self):
        task = Task(description="x", id="00000001", tags={"a"})
        updated = apply_patch(task, TaskPatch(done=True, clear={"tags"}), TODAY)
        assert updated.done is True
        assert updated.tags == set()
        assert task.done is False
        assert task.tags == {"a"}


# ---------------------------------------------------------------------------
# list / queries
# ---------------------------------------------------------------------------

class TestList:
    def test_order_and_done_filter(self, store):
        a = store.add("A")
        b = store.add("B")
        c = store.add("C")
        store.toggle(b.id)

        assert [t.id for t in store.list()] == [a.id, b.id, c.id]
        assert [t.id for t in store.list(include_done=False)] == [a.id, c.id]

    def test_tag_filter(self, store):
        store.add("Report #work #urgent")
        store.add("Groceries #home")
        store.add("Standup #work")
        store.add("Untagged")

        work = store.list(tag_filter={"work"})
        assert [t.description for t in work] == ["Report", "Standup"]
        assert all("work" in t.tags for t in work)

        either = store.list(tag_filter={"home", "urgent"})
        assert [t.description for t in either] == ["Report", "Groceries"]

        assert len(store.list(tag_filter=set())) == 4

    def test_all_tags(self, store):
        store.add("A #b #a")
        store.add("B #c #a")
        assert store.all_tags() == ["a", "b", "c"]

    def test_due_and_reminder_queries(self, store):
        due = store.add("Due !2025-09-28")
        reminded = store.add("Reminder @2025-09-29")
        store.add("Later !2025-12-01")

        assert [t.id for t in store.due_or_overdue()] == [due.id]
        assert [t.id for t in store.reminders_today()] == [reminded.id]

    def test_reload_sees_external_edit(self, store, tasks_file):
        store.add("A")
        with tasks_file.open("a", encoding="utf-8") as f:
            f.write("- [ ] Typed by hand [id:0000beef]\n")

        assert len(store.list()) == 1
        store.reload()
        assert [t.description for t in store.list()] == ["A", "Typed by hand"]

    def test_render(self, store):
        task = store.add("A $1")
        assert store.render() == f"# tasks\n\n- [ ] A [id:{task.id}] $1\n"


# ---------------------------------------------------------------------------
# Subtasks
# ---------------------------------------------------------------------------

class TestSubtasks:
    def test_subtask_under_last_task(self, store, versioning, tasks_file):
        parent = store.add("Plan trip #travel")
        child = store.add("<- Book flights !2025-10-10")

        assert child.description == "Book flights"
        assert child.deadline == date(2025, 10, 10)
        assert child.parent_id == parent.id
        assert child.indent_level == 1
        assert versioning.messages[-1] == 'Added subtask: "Book flights"'
        assert tasks_file.read_text(encoding="utf-8") == (
            "# tasks\n"
            "\n"
            f"- [ ] Plan trip [id:{parent.id}] #travel\n"
            f"  - [ ] Book flights [id:{child.id}] !2025-10-10\n"
        )

    def test_repeated_subtasks_are_siblings(self, store, tasks_file):
        parent = store.add("Plan trip")
        first = store.add("<- Book flights")
        second = store.add("  <- Book hotel")

        reloaded = _open(tasks_file).list()
        assert [t.id for t in reloaded] == [parent.id, first.id, second.id]
        assert [t.parent_id for t in reloaded] == [None, parent.id, parent.id]

    def test_inserted_before_trailing_prose(self, tasks_file):
        tasks_file.write_text(
            "- [ ] A [id:00000001]\n"
            "- [ ] B [id:00000002]\n"
            "  - [ ] B1 [id:00000003]\n"
            "\n"
            "## Notes\n",
            encoding="utf-8",
        )
        store = _open(tasks_file)
        child = store.add("<- B2")

        assert child.parent_id == "00000002"
        assert tasks_file.read_text(encoding="utf-8") == (
            "- [ ] A [id:00000001]\n"
            "- [ ] B [id:00000002]\n"
            "  - [ ] B1 [id:00000003]\n"
            f"  - [ ] B2 [id:{child.id}]\n"
            "\n"
            "## Notes\n"
        )

    def test_follows_parent_indentation(self, tasks_file):
        tasks_file.write_text("\t- [ ] Tabbed [id:00000001]\n", encoding="utf-8")
        child = _open(tasks_file).add("<- Child")

        assert tasks_file.read_text(encoding="utf-8").splitlines()[1] == f"\t  - [ ] Child [id:{child.id}]"

    def test_no_task_to_attach_to(self, store, tasks_file):
        with pytest.raises(ParseError) as exc_info:
            store.add("<- Orphan")
        assert exc_info.value.kind == ParseErrorKind.UNEXPECTED_TOKEN
        assert not tasks_file.exists()

    def test_empty_subtask(self, store):
        store.add("Parent")
        with pytest.raises(ParseError) as exc_info:
            store.add("<-  ")
        assert exc_info.value.kind == ParseErrorKind.EMPTY_DESCRIPTION


# ---------------------------------------------------------------------------
# I/O failures
# ---------------------------------------------------------------------------

class TestIoFailure:
    def test_directory_at_tasks_path(self, tasks_file):
        tasks_file.mkdir()
        with pytest.raises(IoFailure):
            _open(tasks_file)

    def test_invalid_utf8(self, tasks_file):
        tasks_file.write_bytes(b"- [ ] caf\xe9 [id:00000001]\n")
        with pytest.raises(IoFailure):
            _open(tasks_file)

    def test_unwritable_file(self, store, versioning, tasks_file, monkeypatch):
        store.add("Kept")
        before = tasks_file.read_text(encoding="utf-8")

        def fail_write(path, document):
            raise OSError("No space left on device")

        monkeypatch.setattr("yarmtl.store.task_store.write_file", fail_write)

        with pytest.raises(IoFailure) as exc_info:
            store.add("Lost")
        assert isinstance(exc_info.value.cause, OSError)
        assert tasks_file.read_text(encoding="utf-8") == before
        assert [t.description for t in store.list()] == ["Kept"]
        assert len(versioning.commits) == 1

    def test_lock_timeout(self, tasks_file):
        store = TaskStore.load(tasks_file, today=TODAY, clock=lambda: TODAY, lock_timeout=0.05)
        holder = FileLock(str(tasks_file) + ".lock")
        holder.acquire()
        try:
            with pytest.raises(IoFailure, match="Timed out"):
                store.add("Blocked")
        finally:
            holder.release()

        assert store.add("Unblocked").description == "Unblocked"


# ---------------------------------------------------------------------------
# Versioning failure
# ---------------------------------------------------------------------------

class TestVersioningFailure:
    def test_failed_commit_rolls_back(self, store, versioning, tasks_file):
        kept = store.add("Keep me")
        before = tasks_file.read_text(encoding="utf-8")

        versioning.fail_commit = True
        with pytest.raises(VersioningFailure):
            store.add("Lost")
        with pytest.raises(VersioningFailure):
            store.toggle(kept.id)

        assert tasks_file.read_text(encoding="utf-8") == before
        assert [t.description for t in store.list()] == ["Keep me"]
        assert store.get(kept.id).done is False

    def test_failed_first_commit_removes_file(self, tasks_file):
        store = _open(tasks_file, FakeVersioning(fail_commit=True))
        with pytest.raises(VersioningFailure):
            store.add("Lost")
        assert not tasks_file.exists()
        assert store.list() == []

    def test_no_versioning(self, tasks_file):
        store = _open(tasks_file)
        store.add("Works without git")
        assert len(_open(tasks_file).list()) == 1


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestConcurrency:
    def test_second_store_sees_first_stores_write(self, tasks_file):
        first = _open(tasks_file)
        second = _open(tasks_file)

        a = first.add("From first")
        b = second.add("From second")

        assert [t.id for t in _open(tasks_file).list()] == [a.id, b.id]

    def test_concurrent_writers_lose_nothing(self, tasks_file):
        stores = [_open(tasks_file) for _ in range(3)]
        errors = []

        def worker(store, n):
            try:
                for i in range(5):
                    store.add(f"Task {n}-{i}")
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(s, n)) for n, s in enumerate(stores)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        tasks = _open(tasks_file).list()
        assert len(tasks) == 15
        assert len({t.id for t in tasks}) == 15
