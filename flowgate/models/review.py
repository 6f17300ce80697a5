"""Read models for deadlines and the daily/weekly review."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

DeadlineKind = Literal["task", "project"]


class DeadlineEntry(BaseModel):
    kind: DeadlineKind
    id: str
    title: str
    due_date: datetime


class Deadlines(BaseModel):
    """Open tasks and live projects grouped by how soon they are due (UTC days)."""

    today: list[DeadlineEntry] = Field(default_factory=list)
    next_7_days: list[DeadlineEntry] = Field(default_factory=list)
    next_30_days: list[DeadlineEntry] = Field(default_factory=list)


class DailySnapshot(BaseModel):
    inbox_count: int = 0
    overdue_count: int = 0
    due_today_count: int = 0
    due_tomorrow_count: int = 0
    waiting_follow_ups_due_count: int = 0
    projects_without_next_action_count: int = 0
    unverified_count: int = 0


class WeeklySnapshot(BaseModel):
    inbox_count: int = 0
    projects_active_count: int = 0
    projects_waiting_count: int = 0
    projects_on_hold_count: int = 0
    projects_without_next_action_count: int = 0
    waiting_missing_follow_up_count: int = 0
    someday_count: int = 0
    unverified_count: int = 0
    stale_tasks_count: int = 0
