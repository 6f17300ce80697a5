"""Ranking configuration shape and Now-list result types.

Every field carries the built-in default, so a partial JSON document only
overrides what it mentions.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .item import Energy, Project, Task, TaskContext

FilterMode = Literal["strict", "soft"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Weights(_Frozen):
    urgency: float = 1.0
    importance: float = 1.0
    leverage: float = 1.0
    staleness: float = 1.0
    fit: float = 1.0
    friction: float = 1.0
    risk: float = 1.0


class UrgencyConfig(_Frozen):
    overdue: float = 40
    due_24h: float = 35
    due_48h: float = 30
    due_7d: float = 20
    due_30d: float = 10
    else_: float = Field(default=5, alias="else")
    project_cap: float = 20

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ImportanceConfig(_Frozen):
    task_priority_map: dict[str, float] = Field(
        default_factory=lambda: {"low": 2, "normal": 5, "high": 8, "critical": 10}
    )
    project_priority_max: float = 8
    focus_bonus: float = 2


class LeverageHeuristics(_Frozen):
    send_ask_confirm: float = 5
    manual_blocking: float = 10


class LeverageConfig(_Frozen):
    dependents_map: dict[str, float] = Field(
        default_factory=lambda: {"1": 5, "2-3": 10, "4-6": 15, "7+": 20}
    )
    heuristics: LeverageHeuristics = Field(default_factory=LeverageHeuristics)


class StalenessBin(_Frozen):
    days_max: float
    score: float


class StalenessConfig(_Frozen):
    bins: list[StalenessBin] = Field(
        default_factory=lambda: [
            StalenessBin(days_max=2, score=0),
            StalenessBin(days_max=6, score=3),
            StalenessBin(days_max=13, score=7),
            StalenessBin(days_max=29, score=12),
            StalenessBin(days_max=9999, score=15),
        ]
    )
    project_stalled_days: float = 10
    project_stalled_bonus: float = 3


class TimeFit(_Frozen):
    fits: float = 5
    near_fits: float = 2
    over: float = -10


class ContextFit(_Frozen):
    match: float = 5
    mismatch: float = -15


class EnergyFit(_Frozen):
    match: float = 5
    off_by_one: float = -5
    extreme_mismatch: float = -12


class FitConfig(_Frozen):
    time: TimeFit = Field(default_factory=TimeFit)
    context: ContextFit = Field(default_factory=ContextFit)
    energy: EnergyFit = Field(default_factory=EnergyFit)


class FrictionBin(_Frozen):
    minutes_max: float
    penalty: float


class FrictionConfig(_Frozen):
    bins: list[FrictionBin] = Field(
        default_factory=lambda: [
            FrictionBin(minutes_max=10, penalty=0),
            FrictionBin(minutes_max=30, penalty=2),
            FrictionBin(minutes_max=60, penalty=4),
            FrictionBin(minutes_max=120, penalty=7),
            FrictionBin(minutes_max=9999, penalty=10),
        ]
    )


class RiskConfig(_Frozen):
    unverified_penalty: float = 5
    missing_metadata_penalty: float = 2


class FiltersConfig(_Frozen):
    mode: FilterMode = "soft"
    strict_hide_mismatch: bool = True


class TagsConfig(_Frozen):
    max_tags: int = 2
    priority_order: list[str] = Field(
        default_factory=lambda: [
            "overdue",
            "due_today",
            "due_tomorrow",
            "unblocks",
            "focus_project",
            "project_due_soon",
            "stale",
            "fit",
            "needs_review",
        ]
    )


class RankingConfig(_Frozen):
    """Weights, bins and thresholds for the Now list."""

    weights: Weights = Field(default_factory=Weights)
    urgency: UrgencyConfig = Field(default_factory=UrgencyConfig)
    importance: ImportanceConfig = Field(default_factory=ImportanceConfig)
    leverage: LeverageConfig = Field(default_factory=LeverageConfig)
    staleness: StalenessConfig = Field(default_factory=StalenessConfig)
    fit: FitConfig = Field(default_factory=FitConfig)
    friction: FrictionConfig = Field(default_factory=FrictionConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    filters: FiltersConfig = Field(default_factory=FiltersConfig)
    tags: TagsConfig = Field(default_factory=TagsConfig)


class RankFilters(BaseModel):
    """Current availability supplied by the user."""

    time_available: Optional[int] = None
    energy: Optional[Energy] = None
    context: Optional[TaskContext] = None

    @property
    def active(self) -> bool:
        return bool(self.time_available or self.energy or self.context)


class RankCandidate(BaseModel):
    """A task plus the related rows the scorer reads."""

    task: Task
    project: Optional[Project] = None
    next_action_of: Optional[Project] = None
    next_action_project_task_count: int = 0


class ScoreOverrides(BaseModel):
    pinned: bool
    manual_rank: Optional[int] = None


class ScoreBreakdown(BaseModel):
    urgency: float
    importance: float
    leverage: float
    staleness: float
    fit: float
    friction: float
    risk_penalty: float
    total: float
    overrides: ScoreOverrides


class RankedTask(BaseModel):
    candidate: RankCandidate
    score: float
    reason_tags: list[str]
    breakdown: ScoreBreakdown

    @property
    def task(self) -> Task:
        return self.candidate.task


class ExcludedTask(BaseModel):
    candidate: RankCandidate
    reason: str

    @property
    def task(self) -> Task:
        return self.candidate.task


class RankingResult(BaseModel):
    ranked: list[RankedTask] = Field(default_factory=list)
    excluded: list[ExcludedTask] = Field(default_factory=list)
