"""Deadlines, daily/weekly review snapshots and the weekly focus pick."""

import logging
from datetime import datetime, time, timedelta
from typing import Optional

from flowgate.core.errors import NotFoundError
from flowgate.database.sqlite import SqliteDB
from flowgate.models import (
    DailySnapshot,
    DeadlineEntry,
    Deadlines,
    Item,
    Project,
    Task,
    WeeklySnapshot,
)
from flowgate.utils.dates import as_utc, utcnow

from .projects import ProjectService

logger = logging.getLogger(__name__)

STALE_TASK_DAYS = 14

_CLOSED_ITEM_STATES = frozenset({"done", "archived"})
_CLOSED_PROJECT_STATUSES = frozenset({"done", "archived"})


def _start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min, tzinfo=dt.tzinfo)


def _end_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.max, tzinfo=dt.tzinfo)


def _is_open(task: Task, item: Optional[Item]) -> bool:
    return task.status == "active" and (item is None or item.state not in _CLOSED_ITEM_STATES)


def _counts_as_unverified(task: Task, item: Optional[Item]) -> bool:
    return task.unverified and (item is None or item.state not in _CLOSED_ITEM_STATES)


class ReviewService:
    """Read-model operations for review flows, plus the weekly focus flag."""

    def __init__(self, db: SqliteDB, projects: ProjectService) -> None:
        self._db = db
        self._projects = projects

    def deadlines(self, now: Optional[datetime] = None) -> Deadlines:
        """Open tasks and live projects due today, within 7 days, within 30 days.

        Day boundaries are UTC. Anything already overdue before today is left
        to the Now list and the daily snapshot.
        """
        now = as_utc(now) if now else utcnow()
        today_start = _start_of_day(now)
        today_end = _end_of_day(now)
        week_end = _end_of_day(now + timedelta(days=7))
        month_end = _end_of_day(now + timedelta(days=30))

        entries: list[DeadlineEntry] = []
        with self._db.session() as s:
            for task, item in s.list_tasks_with_items():
                if task.due_date is None or not _is_open(task, item):
                    continue
                title = item.title if item is not None else task.action_text
                entries.append(
                    DeadlineEntry(kind="task", id=task.id, title=title, due_date=task.due_date)
                )
            for project in s.list_projects():
                if project.due_date is None or project.status in _CLOSED_PROJECT_STATUSES:
                    continue
                item = s.get_item(project.item_id) if project.item_id else None
                title = item.title if item is not None else (
                    project.outcome_statement or "Untitled project"
                )
                entries.append(
                    DeadlineEntry(
                        kind="project", id=project.id, title=title, due_date=project.due_date
                    )
                )

        entries.sort(key=lambda e: (as_utc(e.due_date), e.kind, e.id))
        result = Deadlines()
        for entry in entries:
            due = as_utc(entry.due_date)
            if today_start <= due <= today_end:
                result.today.append(entry)
            elif today_end < due <= week_end:
                result.next_7_days.append(entry)
            elif week_end < due <= month_end:
                result.next_30_days.append(entry)
        return result

    def daily_snapshot(self, now: Optional[datetime] = None) -> DailySnapshot:
        """Counts for the daily review. Due counts only look at actionable items."""
        now = as_utc(now) if now else utcnow()
        today_start = _start_of_day(now)
        today_end = _end_of_day(now)
        tomorrow = now + timedelta(days=1)
        tomorrow_start, tomorrow_end = _start_of_day(tomorrow), _end_of_day(tomorrow)

        snapshot = DailySnapshot()
        with self._db.session() as s:
            snapshot.inbox_count = len(s.list_items("inbox"))
            snapshot.waiting_follow_ups_due_count = len(s.list_waiting_with_follow_up_due(now))
            for task, item in s.list_tasks_with_items():
                if _counts_as_unverified(task, item):
                    snapshot.unverified_count += 1
                if task.due_date is None or item is None or item.state != "actionable":
                    continue
                due = as_utc(task.due_date)
                if due < now:
                    snapshot.overdue_count += 1
                if today_start <= due <= today_end:
                    snapshot.due_today_count += 1
                elif tomorrow_start <= due <= tomorrow_end:
                    snapshot.due_tomorrow_count += 1
        snapshot.projects_without_next_action_count = len(
            self._projects.list_projects_without_next_action()
        )
        return snapshot

    def weekly_snapshot(self, now: Optional[datetime] = None) -> WeeklySnapshot:
        """Counts for the weekly review."""
        now = as_utc(now) if now else utcnow()
        stale_cutoff = now - timedelta(days=STALE_TASK_DAYS)

        snapshot = WeeklySnapshot()
        with self._db.session() as s:
            snapshot.inbox_count = len(s.list_items("inbox"))
            snapshot.someday_count = len(s.list_items("someday"))
            for project in s.list_projects(["active", "waiting", "on_hold"]):
                if project.status == "active":
                    snapshot.projects_active_count += 1
                elif project.status == "waiting":
                    snapshot.projects_waiting_count += 1
                else:
                    snapshot.projects_on_hold_count += 1
            for item in s.list_items("waiting"):
                reminders = s.list_reminders(item.id)
                if all(as_utc(r.due_at) > now for r in reminders):
                    snapshot.waiting_missing_follow_up_count += 1
            for task, item in s.list_tasks_with_items():
                if _counts_as_unverified(task, item):
                    snapshot.unverified_count += 1
                if (
                    item is not None
                    and item.state == "actionable"
                    and as_utc(task.updated_at) < stale_cutoff
                ):
                    snapshot.stale_tasks_count += 1
        snapshot.projects_without_next_action_count = len(
            self._projects.list_projects_without_next_action()
        )
        return snapshot

    def set_focus_projects(self, project_ids: list[str]) -> list[Project]:
        """Make exactly these projects this week's focus; an empty list clears it.

        Raises:
            NotFoundError: Any unknown project id (nothing is changed).
        """
        wanted = set(project_ids)
        focused = []
        with self._db.session(write=True) as s:
            for project_id in wanted:
                if s.get_project(project_id) is None:
                    raise NotFoundError("Project", project_id)
            for project in s.list_projects():
                flag = project.id in wanted
                if project.focus_this_week != flag:
                    project = s.update_project(
                        project.model_copy(update={"focus_this_week": flag})
                    )
                if flag:
                    focused.append(project)
        logger.info("Focus this week: %d project(s)", len(focused))
        return sorted(focused, key=lambda p: p.id)
