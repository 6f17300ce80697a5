"""Partial-update models.

A field left out of the constructor is "not mentioned" and stays untouched; a
field passed explicitly as None is cleared. `changes()` only returns the
fields the caller actually set.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .item import Energy, ProjectStatus, TaskContext


class _Patch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict[str, Any]:
        """Return only the explicitly supplied fields (None means clear)."""
        return self.model_dump(exclude_unset=True)

    def mentions(self, field: str) -> bool:
        return field in self.model_fields_set


class ItemPatch(_Patch):
    title: Optional[str] = None
    body: Optional[str] = None


class TaskPatch(_Patch):
    action_text: Optional[str] = None
    context: Optional[TaskContext] = None
    energy: Optional[Energy] = None
    estimated_minutes: Optional[int] = None
    due_date: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    pinned_order: Optional[int] = None
    manual_rank: Optional[int] = None
    priority: Optional[int] = None


class ProjectPatch(_Patch):
    outcome_statement: Optional[str] = None
    next_action_task_id: Optional[str] = None
    next_action_text: Optional[str] = None
    status: Optional[ProjectStatus] = None
    due_date: Optional[datetime] = None
    priority: Optional[int] = None
    focus_this_week: Optional[bool] = None
    theme_tag: Optional[str] = None
    waiting_on: Optional[str] = None
    waiting_since: Optional[datetime] = None
    follow_up_at: Optional[datetime] = None
