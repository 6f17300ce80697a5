"""Domain schema for captured items, tasks, projects and their audit trail."""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ItemState = Literal[
    "inbox",
    "clarifying",
    "actionable",
    "project",
    "waiting",
    "snoozed",
    "someday",
    "reference",
    "done",
    "archived",
]
ItemType = Literal["task", "project", "reference", "waiting", "someday", "trash"]
ProjectStatus = Literal[
    "clarifying", "active", "waiting", "on_hold", "someday", "done", "archived"
]
TaskContext = Literal["calls", "errands", "computer", "deep_work"]
Energy = Literal["low", "medium", "high"]
TaskStatus = Literal["active", "completed"]
ArtifactType = Literal["draft", "email", "decision", "note", "file"]
AuditDecision = Literal["approved", "rejected"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Item(BaseModel):
    """The universal capture unit. State changes go through TransitionService."""

    id: str
    title: str
    body: str = ""
    type: ItemType = "task"
    state: ItemState = "inbox"
    source: str = "manual"
    waiting_on: Optional[str] = None
    waiting_since: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    version: int = 0  # Optimistic lock counter, bumped on every write


class Task(BaseModel):
    """The actionable unit, optionally linked to an Item (1:1) and a Project."""

    id: str
    action_text: str
    item_id: Optional[str] = None
    project_id: Optional[str] = None
    context: Optional[TaskContext] = None
    energy: Optional[Energy] = None
    estimated_minutes: Optional[int] = None
    due_date: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    pinned_order: Optional[int] = None
    manual_rank: Optional[int] = None
    priority: int = 0
    status: TaskStatus = "active"
    unverified: bool = False  # Only set by a forced completion
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Project(BaseModel):
    """Outcome-bearing aggregate with a designated next-action task."""

    id: str
    item_id: Optional[str] = None
    outcome_statement: Optional[str] = None
    status: ProjectStatus = "clarifying"
    next_action_task_id: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: int = 0
    focus_this_week: bool = False
    last_progress_at: Optional[datetime] = None
    theme_tag: Optional[str] = None
    waiting_on: Optional[str] = None
    waiting_since: Optional[datetime] = None
    follow_up_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    version: int = 0


class Reminder(BaseModel):
    """Follow-up trigger for an item (used for waiting items)."""

    id: str
    item_id: str
    due_at: datetime
    kind: str = "follow_up"
    created_at: datetime = Field(default_factory=_now)


class Artifact(BaseModel):
    """Evidence attached to an item, consumed by the completion gate."""

    id: str
    item_id: str
    artifact_type: ArtifactType = "note"
    content: Optional[str] = None
    file_pointer: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)

    @property
    def is_evidence(self) -> bool:
        return bool((self.content or "").strip() or self.file_pointer)


class TransitionAuditLog(BaseModel):
    """Immutable record of one transition attempt, approved or rejected."""

    model_config = ConfigDict(frozen=True)

    id: str
    item_id: str
    from_state: ItemState
    to_state_attempted: ItemState
    decision: AuditDecision
    actor: str
    reasons: Optional[dict[str, Any]] = None
    override: bool = False
    override_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
