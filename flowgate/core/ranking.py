"""Now-list ranking: weighted multi-factor score, reason tags, filters, sort.

Everything here is pure over an in-memory snapshot. `now` is injectable so
scores and tags are reproducible.

score = urgency + importance + leverage + staleness + fit - friction - risk
"""

import math
from datetime import datetime
from typing import Optional

from flowgate.models import (
    ExcludedTask,
    RankCandidate,
    RankedTask,
    RankFilters,
    RankingConfig,
    RankingResult,
    ScoreBreakdown,
)
from flowgate.models.ranking import FilterMode, ScoreOverrides
from flowgate.utils.dates import as_utc, utcnow

URGENCY_CAP = 40
IMPORTANCE_CAP = 20
STALENESS_CAP = 15
NEAR_FIT_RATIO = 1.25

ENERGY_ORDER = ("low", "medium", "high")

CONTEXT_LABELS = {
    "calls": "Calls",
    "errands": "Errands",
    "computer": "Computer",
    "deep_work": "Deep work",
}

NEEDS_REVIEW = "Needs review"

_SECONDS_PER_HOUR = 3600
_SECONDS_PER_DAY = 86400


def _hours_until(dt: datetime, now: datetime) -> float:
    return (as_utc(dt) - now).total_seconds() / _SECONDS_PER_HOUR


def _days_until(dt: datetime, now: datetime) -> int:
    """Whole days until dt, rounded up (so anything later today is 0 or 1)."""
    return math.ceil((as_utc(dt) - now).total_seconds() / _SECONDS_PER_DAY)


def _days_since(dt: datetime, now: datetime) -> float:
    return (now - as_utc(dt)).total_seconds() / _SECONDS_PER_DAY


def _blocked_count(candidate: RankCandidate) -> int:
    """Sibling tasks waiting on this one as their project's next action."""
    if candidate.next_action_of is None:
        return 0
    return max(0, candidate.next_action_project_task_count - 1)


def task_priority_score(priority: Optional[int], config: RankingConfig) -> float:
    """Bucket a 0-10 task priority into the configured low/normal/high/critical score."""
    mapping = config.importance.task_priority_map
    if priority is None:
        return 0
    if priority <= 2:
        return mapping.get("low", 2)
    if priority <= 5:
        return mapping.get("normal", 5)
    if priority <= 8:
        return mapping.get("high", 8)
    return mapping.get("critical", 10)


def score_urgency(candidate: RankCandidate, config: RankingConfig, now: datetime) -> float:
    """Tiered by hours to due; falls back to the project's due date, capped lower."""
    u = config.urgency
    due = candidate.task.due_date
    cap = URGENCY_CAP
    if due is None and candidate.project is not None:
        due = candidate.project.due_date
        cap = u.project_cap
    if due is None:
        return 0

    hours = _hours_until(due, now)
    if hours < 0:
        raw = u.overdue
    elif hours <= 24:
        raw = u.due_24h
    elif hours <= 48:
        raw = u.due_48h
    else:
        days = math.ceil(hours / 24)
        if days <= 7:
            raw = u.due_7d
        elif days <= 30:
            raw = u.due_30d
        else:
            raw = u.else_
    return config.weights.urgency * min(raw, cap)


def score_importance(candidate: RankCandidate, config: RankingConfig) -> float:
    score = task_priority_score(candidate.task.priority, config)
    project = candidate.project
    if project is not None:
        score += min(config.importance.project_priority_max, project.priority or 0)
        if project.focus_this_week:
            score += config.importance.focus_bonus
    return config.weights.importance * min(IMPORTANCE_CAP, score)


def score_leverage(candidate: RankCandidate, config: RankingConfig) -> float:
    dependents = config.leverage.dependents_map
    blocked = _blocked_count(candidate)
    if blocked >= 7:
        score = dependents.get("7+", 20)
    elif blocked >= 4:
        score = dependents.get("4-6", 15)
    elif blocked >= 2:
        score = dependents.get("2-3", 10)
    elif blocked == 1:
        score = dependents.get("1", 5)
    else:
        score = 0
    return config.weights.leverage * score


def score_staleness(candidate: RankCandidate, config: RankingConfig, now: datetime) -> float:
    task = candidate.task
    days = _days_since(task.updated_at or task.created_at, now)
    score = next(
        (b.score for b in config.staleness.bins if days <= b.days_max),
        0,
    )
    project = candidate.project
    if project is not None and project.last_progress_at is not None:
        if _days_since(project.last_progress_at, now) > config.staleness.project_stalled_days:
            score += config.staleness.project_stalled_bonus
    return config.weights.staleness * min(STALENESS_CAP, score)


def score_fit(
    candidate: RankCandidate, filters: Optional[RankFilters], config: RankingConfig
) -> float:
    """Zero unless a filter is set; fields the task leaves empty add nothing."""
    if filters is None or not filters.active:
        return 0
    task = candidate.task
    fit = 0.0

    if filters.time_available and task.estimated_minutes is not None:
        available = filters.time_available
        if task.estimated_minutes <= available:
            fit += config.fit.time.fits
        elif task.estimated_minutes <= available * NEAR_FIT_RATIO:
            fit += config.fit.time.near_fits
        else:
            fit += config.fit.time.over

    if filters.context and task.context is not None:
        if task.context == filters.context:
            fit += config.fit.context.match
        else:
            fit += config.fit.context.mismatch

    if filters.energy and task.energy is not None:
        distance = abs(
            ENERGY_ORDER.index(task.energy) - ENERGY_ORDER.index(filters.energy)
        )
        if distance == 0:
            fit += config.fit.energy.match
        elif distance == 1:
            fit += config.fit.energy.off_by_one
        else:
            fit += config.fit.energy.extreme_mismatch

    return config.weights.fit * fit


def score_friction(candidate: RankCandidate, config: RankingConfig) -> float:
    minutes = candidate.task.estimated_minutes or 0
    penalty = next(
        (b.penalty for b in config.friction.bins if minutes <= b.minutes_max),
        0,
    )
    return config.weights.friction * penalty


def score_risk(candidate: RankCandidate, config: RankingConfig) -> float:
    penalty = config.risk.unverified_penalty if candidate.task.unverified else 0
    return config.weights.risk * penalty


def compute_score(
    candidate: RankCandidate,
    config: RankingConfig,
    filters: Optional[RankFilters] = None,
    now: Optional[datetime] = None,
) -> ScoreBreakdown:
    """Score one candidate and return every factor alongside the total."""
    now = as_utc(now) if now else utcnow()
    urgency = score_urgency(candidate, config, now)
    importance = score_importance(candidate, config)
    leverage = score_leverage(candidate, config)
    staleness = score_staleness(candidate, config, now)
    fit = score_fit(candidate, filters, config)
    friction = score_friction(candidate, config)
    risk = score_risk(candidate, config)
    return ScoreBreakdown(
        urgency=urgency,
        importance=importance,
        leverage=leverage,
        staleness=staleness,
        fit=fit,
        friction=friction,
        risk_penalty=risk,
        total=urgency + importance + leverage + staleness + fit - friction - risk,
        overrides=ScoreOverrides(
            pinned=candidate.task.pinned_order is not None,
            manual_rank=candidate.task.manual_rank,
        ),
    )


def strict_exclusion_reason(
    candidate: RankCandidate, filters: RankFilters
) -> Optional[str]:
    """Why strict mode hides this task, or None if it fits every filter."""
    task = candidate.task
    if (
        filters.time_available
        and task.estimated_minutes is not None
        and task.estimated_minutes > filters.time_available
    ):
        return f"Time: needs {task.estimated_minutes} min"
    if filters.energy and task.energy is not None and task.energy != filters.energy:
        return f"Energy: doesn't match {filters.energy}"
    if filters.context and task.context is not None and task.context != filters.context:
        return f"Context: doesn't match {filters.context}"
    return None


def _tag_candidates(
    candidate: RankCandidate, config: RankingConfig, now: datetime
) -> list[tuple[str, str]]:
    """All (key, label) tags that apply, in discovery order."""
    task = candidate.task
    project = candidate.project
    found: list[tuple[str, str]] = []

    if task.due_date is not None:
        due_days = _days_until(task.due_date, now)
        if due_days < 0:
            found.append(("overdue", "Overdue"))
        elif due_days == 0:
            found.append(("due_today", "Due today"))
        elif due_days == 1:
            found.append(("due_tomorrow", "Due tomorrow"))
        elif due_days <= 2:
            found.append(("due_in_2_days", "Due in 2 days"))
        elif due_days <= 7:
            found.append(("due_this_week", "Due this week"))
        elif due_days <= 30:
            found.append(("due_soon", "Due soon"))

    blocked = _blocked_count(candidate)
    if blocked >= 7:
        found.append(("unblocks", "Unblocks 7+ tasks"))
    elif blocked >= 3:
        found.append(("unblocks", f"Unblocks {blocked} tasks"))
    elif blocked >= 1:
        found.append(("unblocks", f"Unblocks {blocked} task"))

    if project is not None:
        if project.focus_this_week:
            found.append(("focus_project", "Focus project"))
        if project.due_date is not None and _days_until(project.due_date, now) <= 7:
            found.append(("project_due_soon", "Project due soon"))
        if (
            project.last_progress_at is not None
            and _days_since(project.last_progress_at, now)
            > config.staleness.project_stalled_days
        ):
            found.append(("project_stalled", "Project stalled"))

    untouched = _days_since(task.updated_at or task.created_at, now)
    if untouched >= 30:
        found.append(("stale", "Stale 30+ days"))
    elif untouched >= 14:
        found.append(("stale", "Stale 2+ weeks"))
    elif untouched >= 7:
        found.append(("stale", "Ignored 7 days"))

    if task.estimated_minutes is not None:
        if task.estimated_minutes <= 10:
            found.append(("fit", "Fits 10 min"))
        elif task.estimated_minutes <= 30:
            found.append(("fit", "Fits 30 min"))
    if task.context:
        found.append(("fit", f"Matches {CONTEXT_LABELS.get(task.context, task.context)}"))

    if task.unverified:
        found.append(("needs_review", NEEDS_REVIEW))
    return found


def reason_tags(
    candidate: RankCandidate, config: RankingConfig, now: Optional[datetime] = None
) -> list[str]:
    """Pick at most max_tags labels, walking the configured priority order.

    Each key contributes its first matching label. An unverified task always
    leads with "Needs review".
    """
    now = as_utc(now) if now else utcnow()
    max_tags = config.tags.max_tags
    found = _tag_candidates(candidate, config, now)

    tags: list[str] = []
    for key in config.tags.priority_order:
        if len(tags) >= max_tags:
            break
        label = next((lbl for k, lbl in found if k == key), None)
        if label is not None and label not in tags:
            tags.append(label)

    if candidate.task.unverified:
        tags = [NEEDS_REVIEW] + [t for t in tags if t != NEEDS_REVIEW]
        tags = tags[:max_tags]
    return tags


def _sort_key(entry: RankedTask) -> tuple:
    """Composite ordering for the Now list.

    pinned_order, manual_rank (nulls last), score desc, due date (nulls last),
    focus project first, updated_at, created_at, id.
    """
    task = entry.task
    project = entry.candidate.project
    return (
        task.pinned_order is None,
        task.pinned_order if task.pinned_order is not None else 0,
        task.manual_rank is None,
        task.manual_rank if task.manual_rank is not None else 0,
        -entry.score,
        task.due_date is None,
        as_utc(task.due_date).timestamp() if task.due_date is not None else 0.0,
        not (project is not None and project.focus_this_week),
        as_utc(task.updated_at).timestamp(),
        as_utc(task.created_at).timestamp(),
        task.id,
    )


def rank_and_tag(
    candidates: list[RankCandidate],
    config: RankingConfig,
    filters: Optional[RankFilters] = None,
    filter_mode: Optional[FilterMode] = None,
    now: Optional[datetime] = None,
) -> RankingResult:
    """Score, tag and order candidates for the Now list.

    Still-snoozed tasks are dropped. In strict mode with an active filter,
    tasks that violate it go to `excluded` with a reason instead of being
    scored; soft mode scores everything and lets the fit factor penalize.
    """
    now = as_utc(now) if now else utcnow()
    mode = filter_mode or config.filters.mode

    eligible = [
        c
        for c in candidates
        if c.task.snoozed_until is None or as_utc(c.task.snoozed_until) <= now
    ]

    excluded: list[ExcludedTask] = []
    to_score = eligible
    if mode == "strict" and filters is not None and filters.active:
        to_score = []
        for c in eligible:
            reason = strict_exclusion_reason(c, filters)
            if reason:
                excluded.append(ExcludedTask(candidate=c, reason=reason))
            else:
                to_score.append(c)

    ranked = []
    for c in to_score:
        breakdown = compute_score(c, config, filters, now)
        ranked.append(
            RankedTask(
                candidate=c,
                score=breakdown.total,
                reason_tags=reason_tags(c, config, now),
                breakdown=breakdown,
            )
        )
    ranked.sort(key=_sort_key)
    return RankingResult(ranked=ranked, excluded=excluded)
