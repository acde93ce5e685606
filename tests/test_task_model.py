"""Tests for models/task.py and models/patch.py."""

from datetime import date

import pytest
from pydantic import ValidationError

from yarmtl.errors import ParseError, ParseErrorKind
from yarmtl.models.patch import TaskPatch
from yarmtl.models.task import Task, TaskDocument, normalize_tag, validate_importance

TODAY = date(2025, 10, 2)


class TestTask:
    def test_tags_normalized(self):
        task = Task(description="x", tags={"#Work", "home"})
        assert task.tags == {"work", "home"}

    def test_invalid_tag_rejected(self):
        with pytest.raises(ParseError) as exc_info:
            Task(description="x", tags={"no spaces"})
        assert exc_info.value.kind == ParseErrorKind.INVALID_TAG

    def test_invalid_importance_rejected(self):
        with pytest.raises(ParseError) as exc_info:
            Task(description="x", importance=6)
        assert exc_info.value.kind == ParseErrorKind.INVALID_IMPORTANCE

    def test_blank_notes_become_none(self):
        assert Task(description="x", notes="   ").notes is None

    @pytest.mark.parametrize("notes", ["line1\n- [ ] injected", "a\r\nb", "a\u2028b"])
    def test_multiline_notes_rejected(self, notes):
        with pytest.raises(ParseError) as exc_info:
            Task(description="x", notes=notes)
        assert exc_info.value.kind == ParseErrorKind.UNEXPECTED_TOKEN

    def test_surrounding_newlines_stripped(self):
        assert Task(description="x", notes="\nnote\n").notes == "note"

    def test_toggle_done_twice(self):
        task = Task(description="x")
        assert task.toggle_done() is True
        assert task.toggle_done() is False
        assert task.done is False

    def test_equality_ignores_position(self):
        a = Task(description="x", id="00000001", line_number=3, indent_level=1)
        b = Task(description="x", id="00000001", line_number=9)
        assert a == b

    def test_tag_filter_union(self):
        task = Task(description="x", tags={"work", "urgent"})
        assert task.matches_tag_filter({"home", "work"})
        assert task.matches_tag_filter({"#URGENT"})
        assert not task.matches_tag_filter({"home"})

    def test_empty_tag_filter_matches_everything(self):
        task = Task(description="x")
        assert task.matches_tag_filter(None)
        assert task.matches_tag_filter(set())

    def test_overdue_and_due_today(self):
        assert Task(description="x", deadline=date(2025, 10, 1)).is_overdue(TODAY)
        assert Task(description="x", deadline=TODAY).is_due_today(TODAY)
        assert not Task(description="x", deadline=TODAY).is_overdue(TODAY)
        assert not Task(description="x").is_overdue(TODAY)

    def test_str_is_rendered_line(self):
        assert str(Task(description="x", id="00000001")) == "- [ ] x [id:00000001]"


class TestHelpers:
    def test_normalize_tag(self):
        assert normalize_tag("#Some-Tag_1") == "some-tag_1"

    def test_validate_importance(self):
        assert validate_importance(5) == 5
        with pytest.raises(ParseError):
            validate_importance(0)
        with pytest.raises(ParseError):
            validate_importance(True)


class TestTaskDocument:
    def _doc(self):
        return TaskDocument(entries=[
            "# tasks",
            Task(description="a", id="00000001"),
            "",
            Task(description="b", id="00000002"),
        ])

    def test_tasks_and_ids(self):
        doc = self._doc()
        assert [t.description for t in doc.tasks()] == ["a", "b"]
        assert doc.task_ids() == {"00000001", "00000002"}

    def test_find_remove_replace(self):
        doc = self._doc()
        assert doc.find_by_id("00000002").description == "b"
        assert doc.find_by_id("ffffffff") is None

        doc.replace("00000001", Task(description="a2", id="00000001"))
        assert doc.entries[1].description == "a2"

        removed = doc.remove("00000001")
        assert removed.description == "a2"
        assert doc.entries == ["# tasks", "", Task(description="b", id="00000002")]
        assert doc.remove("00000001") is None


class TestTaskPatch:
    def test_unset_fields_are_empty(self):
        assert TaskPatch().is_empty()
        assert not TaskPatch(importance=2).is_empty()
        assert not TaskPatch(clear={"notes"}).is_empty()

    def test_dates_from_strings(self):
        patch = TaskPatch.model_validate({"deadline": "2025-10-05"})
        assert patch.deadline == date(2025, 10, 5)

    def test_tags_normalized(self):
        assert TaskPatch(tags={"#Work"}).tags == {"work"}

    @pytest.mark.parametrize("data", [
        {"importance": 9},
        {"tags": ["bad tag"]},
        {"clear": ["description"]},
        {"unknown": 1},
        {"deadline": "next week"},
    ])
    def test_invalid(self, data):
        with pytest.raises(ValidationError):
            TaskPatch.model_validate(data)
