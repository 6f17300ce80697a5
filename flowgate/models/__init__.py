"""Domain models."""

from .item import (
    Artifact,
    ArtifactType,
    Energy,
    Item,
    ItemState,
    ItemType,
    Project,
    ProjectStatus,
    Reminder,
    Task,
    TaskContext,
    TransitionAuditLog,
)
from .patches import ItemPatch, ProjectPatch, TaskPatch
from .review import DailySnapshot, DeadlineEntry, Deadlines, WeeklySnapshot
from .ranking import (
    ExcludedTask,
    RankCandidate,
    RankedTask,
    RankFilters,
    RankingConfig,
    RankingResult,
    ScoreBreakdown,
)
from .transition import (
    ProjectResult,
    TransitionPayload,
    TransitionResult,
    VerifierFailure,
    VerifierResult,
)

__all__ = [
    "Artifact",
    "ArtifactType",
    "DailySnapshot",
    "DeadlineEntry",
    "Deadlines",
    "Energy",
    "ExcludedTask",
    "Item",
    "ItemPatch",
    "ItemState",
    "ItemType",
    "Project",
    "ProjectPatch",
    "ProjectResult",
    "ProjectStatus",
    "RankCandidate",
    "RankedTask",
    "RankFilters",
    "RankingConfig",
    "RankingResult",
    "Reminder",
    "ScoreBreakdown",
    "Task",
    "TaskContext",
    "TaskPatch",
    "TransitionAuditLog",
    "TransitionPayload",
    "TransitionResult",
    "VerifierFailure",
    "VerifierResult",
    "WeeklySnapshot",
]
