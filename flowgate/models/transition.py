"""Request/response shapes for state transitions and verifier verdicts."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .item import Energy, Item, ItemType, Project, Task, TaskContext

VerifierStatus = Literal["PASS", "FAIL", "NEEDS_USER"]
GateName = Literal["valid_next_action", "completion"]


class VerifierFailure(BaseModel):
    code: str
    severity: str = "high"
    message: str
    field_ref: Optional[str] = Field(default=None, alias="fieldRef")

    model_config = ConfigDict(populate_by_name=True)


class VerifierResult(BaseModel):
    """Structured verdict returned by every verifier call."""

    status: VerifierStatus
    failures: list[VerifierFailure] = Field(default_factory=list)
    missing_inputs: list[str] = Field(default_factory=list, alias="missingInputs")
    vagueness_flags: list[str] = Field(default_factory=list, alias="vaguenessFlags")
    unverifiable_claims: list[str] = Field(
        default_factory=list, alias="unverifiableClaims"
    )

    model_config = ConfigDict(populate_by_name=True)

    @property
    def passed(self) -> bool:
        return self.status == "PASS"


class TransitionPayload(BaseModel):
    """Optional inputs a caller may send along with a target state."""

    action_text: Optional[str] = None
    context: Optional[TaskContext] = None
    energy: Optional[Energy] = None
    estimated_minutes: Optional[int] = None
    due_date: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    waiting_on: Optional[str] = None
    follow_up_at: Optional[datetime] = None
    item_type: Optional[ItemType] = None


class TransitionResult(BaseModel):
    """Outcome of one execute_transition call.

    Rejections are values, not exceptions: callers can edit and retry, or
    resend with force and an override reason.
    """

    success: bool
    reason: Optional[str] = None
    item: Optional[Item] = None
    task: Optional[Task] = None
    project_id: Optional[str] = None
    next_action_required: bool = False
    gate_failed: Optional[GateName] = None
    failures: list[VerifierFailure] = Field(default_factory=list)
    missing_inputs: list[str] = Field(default_factory=list)
    vagueness_flags: list[str] = Field(default_factory=list)
    suggested_questions: list[str] = Field(default_factory=list)


class ProjectResult(BaseModel):
    """Outcome of a project service call that can be refused by a gate."""

    success: bool
    reason: Optional[str] = None
    project: Optional[Project] = None
    task: Optional[Task] = None
    verifier_failures: list[VerifierFailure] = Field(default_factory=list)
    remaining_tasks: list[Task] = Field(default_factory=list)
