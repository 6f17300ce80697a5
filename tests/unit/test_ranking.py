"""Unit tests for Now-list scoring, reason tags, filtering and ordering."""

from datetime import timedelta
from typing import Optional

import pytest

from fakes import FIXED_NOW
from flowgate.core.ranking import compute_score, rank_and_tag, reason_tags, score_urgency
from flowgate.models import Project, RankCandidate, RankFilters, RankingConfig, Task
from flowgate.models.ranking import Weights

CONFIG = RankingConfig()


def _task(task_id: str = "t1", **kw) -> Task:
    kw.setdefault("created_at", FIXED_NOW)
    kw.setdefault("updated_at", FIXED_NOW)
    return Task(id=task_id, action_text=f"Call {task_id}", **kw)


def _cand(
    task: Optional[Task] = None,
    project: Optional[Project] = None,
    next_action_of: Optional[Project] = None,
    count: int = 0,
) -> RankCandidate:
    return RankCandidate(
        task=task or _task(),
        project=project,
        next_action_of=next_action_of,
        next_action_project_task_count=count,
    )


@pytest.mark.parametrize(
    "offset,expected",
    [
        (timedelta(hours=-1), 40),
        (timedelta(hours=12), 35),
        (timedelta(hours=36), 30),
        (timedelta(days=5), 20),
        (timedelta(days=20), 10),
        (timedelta(days=60), 5),
    ],
)
def test_urgency_tiers(offset: timedelta, expected: float) -> None:
    cand = _cand(_task(due_date=FIXED_NOW + offset))
    assert score_urgency(cand, CONFIG, FIXED_NOW) == expected


def test_urgency_falls_back_to_project_due_with_lower_cap() -> None:
    project = Project(id="p", due_date=FIXED_NOW + timedelta(hours=1))
    assert score_urgency(_cand(project=project), CONFIG, FIXED_NOW) == 20
    assert score_urgency(_cand(), CONFIG, FIXED_NOW) == 0


def test_naive_due_date_is_treated_as_utc() -> None:
    naive_due = (FIXED_NOW + timedelta(hours=12)).replace(tzinfo=None)
    assert score_urgency(_cand(_task(due_date=naive_due)), CONFIG, FIXED_NOW) == 35


def test_score_breakdown_and_total() -> None:
    task = _task(due_date=FIXED_NOW + timedelta(hours=12), priority=9, estimated_minutes=20)
    breakdown = compute_score(_cand(task), CONFIG, now=FIXED_NOW)

    assert breakdown.urgency == 35
    assert breakdown.importance == 10
    assert breakdown.leverage == 0
    assert breakdown.staleness == 0
    assert breakdown.fit == 0
    assert breakdown.friction == 2
    assert breakdown.risk_penalty == 0
    assert breakdown.total == 43
    assert breakdown.overrides.pinned is False


def test_importance_with_project_is_capped() -> None:
    focus = Project(id="p", priority=5, focus_this_week=True)
    big = Project(id="q", priority=20, focus_this_week=True)

    assert compute_score(_cand(_task(priority=9), focus), CONFIG, now=FIXED_NOW).importance == 17
    assert compute_score(_cand(_task(priority=9), big), CONFIG, now=FIXED_NOW).importance == 20


def test_leverage_counts_siblings_of_next_action() -> None:
    project = Project(id="p")
    assert compute_score(_cand(next_action_of=project, count=4), CONFIG, now=FIXED_NOW).leverage == 10
    assert compute_score(_cand(next_action_of=project, count=2), CONFIG, now=FIXED_NOW).leverage == 5
    assert compute_score(_cand(count=9), CONFIG, now=FIXED_NOW).leverage == 0


def test_staleness_and_stalled_project() -> None:
    old = FIXED_NOW - timedelta(days=10)
    project = Project(id="p", last_progress_at=FIXED_NOW - timedelta(days=11))
    cand = _cand(_task(updated_at=old, created_at=old), project)
    assert compute_score(cand, CONFIG, now=FIXED_NOW).staleness == 10


@pytest.mark.parametrize(
    "task_kw,filters,expected",
    [
        ({"estimated_minutes": 20}, RankFilters(time_available=30), 5),
        ({"estimated_minutes": 36}, RankFilters(time_available=30), 2),
        ({"estimated_minutes": 60}, RankFilters(time_available=30), -10),
        ({"context": "calls"}, RankFilters(context="calls"), 5),
        ({"context": "errands"}, RankFilters(context="calls"), -15),
        ({"energy": "low"}, RankFilters(energy="high"), -12),
        ({"energy": "medium"}, RankFilters(energy="high"), -5),
        ({}, RankFilters(energy="high", context="calls"), 0),
    ],
)
def test_fit(task_kw: dict, filters: RankFilters, expected: float) -> None:
    assert compute_score(_cand(_task(**task_kw)), CONFIG, filters, FIXED_NOW).fit == expected


def test_unverified_task_pays_risk_penalty() -> None:
    assert compute_score(_cand(_task(unverified=True)), CONFIG, now=FIXED_NOW).risk_penalty == 5


def test_weights_scale_factors() -> None:
    config = RankingConfig(weights=Weights(urgency=2.0))
    cand = _cand(_task(due_date=FIXED_NOW + timedelta(hours=12)))
    assert compute_score(cand, config, now=FIXED_NOW).urgency == 70


def test_reason_tags_follow_priority_order() -> None:
    project = Project(id="p", focus_this_week=True)
    cand = _cand(
        _task(due_date=FIXED_NOW - timedelta(days=2)),
        project=project,
        next_action_of=project,
        count=4,
    )
    assert reason_tags(cand, CONFIG, FIXED_NOW) == ["Overdue", "Unblocks 3 tasks"]


def test_reason_tags_due_today_and_fit() -> None:
    task = _task(due_date=FIXED_NOW - timedelta(hours=1), estimated_minutes=5, context="calls")
    assert reason_tags(_cand(task), CONFIG, FIXED_NOW) == ["Due today", "Fits 10 min"]


def test_needs_review_always_leads() -> None:
    task = _task(due_date=FIXED_NOW - timedelta(days=2), unverified=True, estimated_minutes=5)
    assert reason_tags(_cand(task), CONFIG, FIXED_NOW) == ["Needs review", "Overdue"]


def test_stale_tag() -> None:
    old = FIXED_NOW - timedelta(days=15)
    assert reason_tags(_cand(_task(updated_at=old, created_at=old)), CONFIG, FIXED_NOW) == [
        "Stale 2+ weeks"
    ]


def test_strict_mode_excludes_with_reasons() -> None:
    long = _task("long", estimated_minutes=30)
    tired = _task("tired", energy="low")
    away = _task("away", context="errands")
    fits = _task("fits", estimated_minutes=10, energy="high", context="calls")
    filters = RankFilters(time_available=15, energy="high", context="calls")

    result = rank_and_tag(
        [_cand(long), _cand(tired), _cand(away), _cand(fits)],
        CONFIG,
        filters,
        "strict",
        FIXED_NOW,
    )

    assert [r.task.id for r in result.ranked] == ["fits"]
    reasons = {e.task.id: e.reason for e in result.excluded}
    assert reasons == {
        "long": "Time: needs 30 min",
        "tired": "Energy: doesn't match high",
        "away": "Context: doesn't match calls",
    }


def test_soft_mode_keeps_everything() -> None:
    filters = RankFilters(time_available=15)
    result = rank_and_tag(
        [_cand(_task("long", estimated_minutes=30)), _cand(_task("short", estimated_minutes=10))],
        CONFIG,
        filters,
        now=FIXED_NOW,
    )
    assert [r.task.id for r in result.ranked] == ["short", "long"]
    assert result.excluded == []


def test_still_snoozed_tasks_are_dropped() -> None:
    later = _task("later", snoozed_until=FIXED_NOW + timedelta(hours=1))
    woke = _task("woke", snoozed_until=FIXED_NOW - timedelta(hours=1))
    result = rank_and_tag([_cand(later), _cand(woke)], CONFIG, now=FIXED_NOW)
    assert [r.task.id for r in result.ranked] == ["woke"]


def test_pinned_then_manual_rank_then_score() -> None:
    urgent = _task("urgent", due_date=FIXED_NOW - timedelta(days=2))
    ranked_two = _task("ranked_two", manual_rank=2)
    ranked_one = _task("ranked_one", manual_rank=1)
    pinned_two = _task("pinned_two", pinned_order=2)
    pinned_one = _task("pinned_one", pinned_order=1)

    result = rank_and_tag(
        [_cand(t) for t in (urgent, ranked_two, ranked_one, pinned_two, pinned_one)],
        CONFIG,
        now=FIXED_NOW,
    )

    assert [r.task.id for r in result.ranked] == [
        "pinned_one",
        "pinned_two",
        "ranked_one",
        "ranked_two",
        "urgent",
    ]
    assert result.ranked[0].breakdown.overrides.pinned is True


def test_ties_break_on_due_date_then_focus_then_age() -> None:
    config = RankingConfig(weights=Weights(urgency=0, importance=0))
    focus = Project(id="f", focus_this_week=True)
    older = FIXED_NOW - timedelta(hours=1)

    no_due = _task("no_due")
    due_late = _task("due_late", due_date=FIXED_NOW + timedelta(days=3))
    due_soon = _task("due_soon", due_date=FIXED_NOW + timedelta(days=1))
    in_focus = _task("in_focus")
    touched_earlier = _task("touched_earlier", updated_at=older, created_at=older)

    result = rank_and_tag(
        [
            _cand(no_due),
            _cand(due_late),
            _cand(due_soon),
            _cand(in_focus, project=focus),
            _cand(touched_earlier),
        ],
        config,
        now=FIXED_NOW,
    )

    assert [r.task.id for r in result.ranked] == [
        "due_soon",
        "due_late",
        "in_focus",
        "touched_earlier",
        "no_due",
    ]


def test_ranking_is_deterministic() -> None:
    cands = [
        _cand(_task(f"t{i}", estimated_minutes=i * 10, updated_at=FIXED_NOW - timedelta(minutes=i)))
        for i in range(5)
    ]
    first = rank_and_tag(cands, CONFIG, now=FIXED_NOW)
    second = rank_and_tag(list(reversed(cands)), CONFIG, now=FIXED_NOW)
    assert [r.task.id for r in first.ranked] == [r.task.id for r in second.ranked]
