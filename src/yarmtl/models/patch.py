"""Partial task updates, validated with pydantic."""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from yarmtl.models.task import TAG_RE

ClearableField = Literal["deadline", "reminder", "tags", "notes", "importance"]


class TaskPatch(BaseModel):
    """
    Fields to change on an existing task.

    Unset fields are left alone. Names listed in ``clear`` are reset to
    absent (or the empty tag set).
    """

    model_config = ConfigDict(extra="forbid")

    description: Optional[str] = None
    done: Optional[bool] = None
    deadline: Optional[date] = None
    reminder: Optional[date] = None
    tags: Optional[Set[str]] = None
    notes: Optional[str] = None
    importance: Optional[int] = Field(default=None, ge=1, le=5)
    clear: Set[ClearableField] = Field(default_factory=set)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: Optional[Set[str]]) -> Optional[Set[str]]:
        if value is None:
            return None
        tags = set()
        for tag in value:
            tag = tag.lstrip("#")
            if not TAG_RE.match(tag):
                raise ValueError(f"invalid tag '{tag}'")
            tags.add(tag.lower())
        return tags

    def is_empty(self) -> bool:
        return not self.clear and not self.model_dump(exclude_unset=True, exclude={"clear"})
