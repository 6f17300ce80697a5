"""Unit tests for ReviewService: deadlines, daily/weekly snapshots, weekly focus."""

from datetime import timedelta
from typing import Optional

import pytest

from fakes import FIXED_NOW
from flowgate.core.errors import NotFoundError
from flowgate.core.services import ReviewService
from flowgate.database.sqlite import SqliteDB
from flowgate.models import DailySnapshot, Item, Project, Reminder, Task, WeeklySnapshot


def _task(
    db: SqliteDB,
    task_id: str,
    state: Optional[str] = "actionable",
    due=None,
    **kw,
) -> Task:
    """Insert a task, with a linked item in `state` unless state is None."""
    item_id = None
    with db.session(write=True) as s:
        if state is not None:
            item_id = f"item-{task_id}"
            s.insert_item(Item(id=item_id, title=f"Item {task_id}", state=state))
        return s.insert_task(
            Task(id=task_id, action_text=f"Do {task_id}", item_id=item_id, due_date=due, **kw)
        )


def test_deadlines_buckets(reviews: ReviewService, db: SqliteDB) -> None:
    _task(db, "earlier-today", due=FIXED_NOW - timedelta(hours=2))
    _task(db, "later-today", due=FIXED_NOW + timedelta(hours=3))
    _task(db, "yesterday", due=FIXED_NOW - timedelta(days=1))
    _task(db, "week-edge", due=FIXED_NOW + timedelta(days=7, hours=11))
    _task(db, "month", due=FIXED_NOW + timedelta(days=8))
    _task(db, "too-far", due=FIXED_NOW + timedelta(days=31))
    _task(db, "finished", state="done", due=FIXED_NOW + timedelta(hours=1))
    _task(db, "no-due")

    view = reviews.deadlines(FIXED_NOW)

    assert [e.id for e in view.today] == ["earlier-today", "later-today"]
    assert [e.id for e in view.next_7_days] == ["week-edge"]
    assert [e.id for e in view.next_30_days] == ["month"]
    assert view.today[0].title == "Item earlier-today"


def test_deadlines_include_projects_and_itemless_tasks(
    reviews: ReviewService, db: SqliteDB
) -> None:
    _task(db, "loose", state=None, due=FIXED_NOW + timedelta(days=2))
    with db.session(write=True) as s:
        s.insert_project(
            Project(
                id="lease",
                outcome_statement="Lease renewed for 2027",
                status="active",
                due_date=FIXED_NOW + timedelta(days=2),
            )
        )
        s.insert_project(
            Project(id="old", status="done", due_date=FIXED_NOW + timedelta(days=2))
        )

    view = reviews.deadlines(FIXED_NOW)

    assert [(e.kind, e.id, e.title) for e in view.next_7_days] == [
        ("project", "lease", "Lease renewed for 2027"),
        ("task", "loose", "Do loose"),
    ]
    assert view.today == [] and view.next_30_days == []


def test_daily_snapshot_counts(reviews: ReviewService, db: SqliteDB) -> None:
    _task(db, "late-today", due=FIXED_NOW - timedelta(hours=1))
    _task(db, "last-week", due=FIXED_NOW - timedelta(days=6))
    _task(db, "tomorrow", due=FIXED_NOW + timedelta(days=1))
    _task(db, "someday-due", state="someday", due=FIXED_NOW - timedelta(days=1))
    _task(db, "forced", unverified=True)
    _task(db, "forced-done", state="done", unverified=True, status="completed")
    with db.session(write=True) as s:
        s.insert_item(Item(id="new", title="Call plumber"))
        s.insert_item(Item(id="w", title="Contract", state="waiting", waiting_on="Legal"))
        s.insert_reminder(Reminder(id="r", item_id="w", due_at=FIXED_NOW - timedelta(hours=1)))
        s.insert_project(Project(id="p", status="active"))

    snapshot = reviews.daily_snapshot(FIXED_NOW)

    assert snapshot.inbox_count == 1
    assert snapshot.overdue_count == 2
    assert snapshot.due_today_count == 1
    assert snapshot.due_tomorrow_count == 1
    assert snapshot.waiting_follow_ups_due_count == 1
    assert snapshot.projects_without_next_action_count == 1
    assert snapshot.unverified_count == 1


def test_weekly_snapshot_counts(reviews: ReviewService, db: SqliteDB) -> None:
    _task(db, "stale", updated_at=FIXED_NOW - timedelta(days=20))
    _task(db, "fresh", updated_at=FIXED_NOW - timedelta(days=2))
    _task(db, "parked", state="someday", updated_at=FIXED_NOW - timedelta(days=40))
    with db.session(write=True) as s:
        s.insert_item(Item(id="inbox", title="Call plumber"))
        for item_id in ("no-reminder", "nudged", "later"):
            s.insert_item(Item(id=item_id, title=item_id, state="waiting"))
        s.insert_reminder(
            Reminder(id="r1", item_id="nudged", due_at=FIXED_NOW - timedelta(days=1))
        )
        s.insert_reminder(
            Reminder(id="r2", item_id="later", due_at=FIXED_NOW + timedelta(days=3))
        )
        s.insert_project(Project(id="a", status="active", next_action_task_id="fresh"))
        s.insert_project(Project(id="w", status="waiting", next_action_task_id="stale"))
        s.insert_project(Project(id="h", status="on_hold"))
        s.insert_project(Project(id="s", status="someday"))

    snapshot = reviews.weekly_snapshot(FIXED_NOW)

    assert snapshot.inbox_count == 1
    assert snapshot.projects_active_count == 1
    assert snapshot.projects_waiting_count == 1
    assert snapshot.projects_on_hold_count == 1
    assert snapshot.projects_without_next_action_count == 1
    assert snapshot.waiting_missing_follow_up_count == 2
    assert snapshot.someday_count == 1
    assert snapshot.stale_tasks_count == 1
    assert snapshot.unverified_count == 0


def test_empty_snapshots(reviews: ReviewService) -> None:
    assert reviews.daily_snapshot(FIXED_NOW) == DailySnapshot()
    assert reviews.weekly_snapshot(FIXED_NOW) == WeeklySnapshot()
    assert reviews.deadlines(FIXED_NOW).today == []


def test_focus_replaces_previous_pick(reviews: ReviewService, db: SqliteDB) -> None:
    with db.session(write=True) as s:
        s.insert_project(Project(id="a", status="active", focus_this_week=True))
        s.insert_project(Project(id="b", status="active"))
        s.insert_project(Project(id="c", status="someday"))

    focused = reviews.set_focus_projects(["c", "b"])

    assert [p.id for p in focused] == ["b", "c"]
    with db.session() as s:
        flags = {p.id: p.focus_this_week for p in s.list_projects()}
    assert flags == {"a": False, "b": True, "c": True}

    assert reviews.set_focus_projects([]) == []
    with db.session() as s:
        assert not any(p.focus_this_week for p in s.list_projects())


def test_focus_unknown_project_changes_nothing(reviews: ReviewService, db: SqliteDB) -> None:
    with db.session(write=True) as s:
        s.insert_project(Project(id="a", status="active", focus_this_week=True))

    with pytest.raises(NotFoundError):
        reviews.set_focus_projects(["missing"])

    with db.session() as s:
        assert s.get_project("a").focus_this_week is True
