"""Gate verdicts for entering actionable/done and for project activity.

Functions here decide; they never write. The transition and project services
apply a verdict (mutation plus audit row) in one transaction afterwards.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from flowgate.models import Artifact, Item, ProjectStatus, Task, VerifierFailure
from flowgate.models.transition import GateName
from flowgate.utils.dates import as_utc, utcnow

from .rules import is_plausible_next_action
from .verifier import Verifier

logger = logging.getLogger(__name__)

MIN_OUTCOME_LENGTH = 10


class GateVerdict(BaseModel):
    """Result of Gate 1 or Gate 2.

    `downgrade` asks the caller to persist the proposed task fields and move
    the item back to clarifying even though the transition is rejected.
    """

    passed: bool
    gate_failed: Optional[GateName] = None
    reason: Optional[str] = None
    failures: list[VerifierFailure] = Field(default_factory=list)
    missing_inputs: list[str] = Field(default_factory=list)
    vagueness_flags: list[str] = Field(default_factory=list)
    suggested_questions: list[str] = Field(default_factory=list)
    audit_reasons: Optional[dict[str, Any]] = None
    downgrade: bool = False


class ProjectGateResult(BaseModel):
    passed: bool
    reason: Optional[str] = None
    verifier_failures: list[VerifierFailure] = Field(default_factory=list)
    suggest_status: Optional[ProjectStatus] = None


def _dump_failures(failures: list[VerifierFailure]) -> list[dict[str, Any]]:
    return [f.model_dump(by_alias=True, exclude_none=True) for f in failures]


def evaluate_actionable(
    action_text: Optional[str], verifier: Verifier, force: bool = False
) -> GateVerdict:
    """Gate 1: may the item become actionable with this next action?

    An empty action is rejected even when forced. Otherwise force skips both
    the rule check and the verifier.
    """
    text = (action_text or "").strip()
    if not text:
        return GateVerdict(
            passed=False,
            gate_failed="valid_next_action",
            reason="actionText required for actionable",
            failures=[
                VerifierFailure(
                    code="MISSING", severity="high", message="actionText is required"
                )
            ],
            missing_inputs=["actionText"],
            audit_reasons={"reason": "missing_actionText"},
        )

    if force:
        return GateVerdict(passed=True, audit_reasons={"actionText": text, "override": True})

    rule = is_plausible_next_action(text)
    if not rule.valid:
        logger.info("Gate 1 rule check failed for %r: %s", text, rule.reason)
        return GateVerdict(
            passed=False,
            gate_failed="valid_next_action",
            reason=rule.reason,
            failures=[
                VerifierFailure(
                    code="VAGUE",
                    severity="high",
                    message=rule.reason or "Invalid",
                    field_ref="actionText",
                )
            ],
            audit_reasons={"reason": "deterministic_fail", "ruleReason": rule.reason},
            downgrade=True,
        )

    result = verifier.verify_next_action(text)
    if not result.passed:
        logger.info("Gate 1 verifier returned %s for %r", result.status, text)
        return GateVerdict(
            passed=False,
            gate_failed="valid_next_action",
            reason="Verifier did not pass",
            failures=result.failures,
            missing_inputs=result.missing_inputs,
            vagueness_flags=result.vagueness_flags,
            suggested_questions=list(result.missing_inputs),
            audit_reasons={
                "verifier": result.status,
                "failures": _dump_failures(result.failures),
            },
            downgrade=True,
        )

    return GateVerdict(passed=True, audit_reasons={"actionText": text, "override": False})


def evaluate_done(
    task: Optional[Task],
    artifacts: list[Artifact],
    title: str,
    verifier: Verifier,
    force: bool = False,
) -> GateVerdict:
    """Gate 2: may the item's task be marked done?

    Args:
        task: The item's linked task, if any.
        artifacts: The item's artifacts, newest first.
        title: Item title, used as the task title for the verifier.
        verifier: Semantic verifier.
        force: Skip evidence and verifier checks (the task becomes unverified).
    """
    if task is None:
        return GateVerdict(
            passed=False,
            reason="Item has no task; cannot mark done",
            audit_reasons={"reason": "no_task"},
        )

    if force:
        return GateVerdict(passed=True, audit_reasons={"override": True, "unverified": True})

    if not any(a.is_evidence for a in artifacts):
        logger.info("Gate 2 rejected task %s: no evidence", task.id)
        return GateVerdict(
            passed=False,
            gate_failed="completion",
            reason="No draft artifact attached",
            failures=[
                VerifierFailure(
                    code="NO_EVIDENCE",
                    severity="high",
                    message="No draft artifact attached",
                )
            ],
            missing_inputs=["evidence"],
            suggested_questions=[
                "Add a draft, note, or file as evidence before marking done."
            ],
            audit_reasons={"reason": "no_evidence"},
        )

    latest = artifacts[0]
    result = verifier.verify_completion(title or task.action_text, task.action_text, latest)
    if not result.passed:
        logger.info("Gate 2 verifier returned %s for task %s", result.status, task.id)
        return GateVerdict(
            passed=False,
            gate_failed="completion",
            reason="Verification failed",
            failures=result.failures,
            missing_inputs=result.missing_inputs,
            vagueness_flags=result.vagueness_flags,
            suggested_questions=list(result.missing_inputs),
            audit_reasons={"verifier": result.model_dump(by_alias=True, exclude_none=True)},
        )

    return GateVerdict(passed=True, audit_reasons={"override": False, "unverified": False})


def check_gate_a(
    outcome: Optional[str],
    next_task: Optional[Task],
    next_item: Optional[Item],
    verifier: Optional[Verifier] = None,
    now: Optional[datetime] = None,
) -> ProjectGateResult:
    """Gate A: may a project be active with this outcome and next action?

    A next-action task without an item is judged on its text alone.
    Pass a verifier to also check the outcome and the next action semantically.
    """
    text = (outcome or "").strip()
    if len(text) < MIN_OUTCOME_LENGTH:
        return ProjectGateResult(
            passed=False,
            reason=(
                "Outcome statement is required and must be at least "
                f"{MIN_OUTCOME_LENGTH} characters for active."
            ),
        )
    if next_task is None:
        return ProjectGateResult(passed=False, reason="Next action is required for active.")
    if next_task.status == "completed":
        return ProjectGateResult(
            passed=False, reason="Next action task is already completed."
        )

    if next_item is not None:
        if next_item.state == "waiting":
            return ProjectGateResult(
                passed=False,
                reason="Next action task is waiting; project should be waiting.",
            )
        if next_item.state == "snoozed":
            return ProjectGateResult(
                passed=False, reason="Next action task is snoozed; cannot be active."
            )
        if next_item.state != "actionable":
            return ProjectGateResult(
                passed=False, reason="Next action task must be actionable."
            )

    current = as_utc(now) if now else utcnow()
    if next_task.snoozed_until and as_utc(next_task.snoozed_until) > current:
        return ProjectGateResult(passed=False, reason="Next action task is snoozed.")

    rule = is_plausible_next_action(next_task.action_text)
    if not rule.valid:
        return ProjectGateResult(passed=False, reason=rule.reason or "Next action is too vague.")

    if verifier is not None:
        outcome_check = verifier.verify_project_outcome(text)
        if not outcome_check.passed:
            return ProjectGateResult(
                passed=False,
                reason="Outcome did not pass verification.",
                verifier_failures=outcome_check.failures,
            )
        action_check = verifier.verify_project_next_action(text, next_task.action_text)
        if not action_check.passed:
            return ProjectGateResult(
                passed=False,
                reason="Next action did not pass verification.",
                verifier_failures=action_check.failures,
            )

    return ProjectGateResult(passed=True)


def check_gate_b(
    outcome: Optional[str],
    next_task: Optional[Task],
    next_item: Optional[Item],
    now: Optional[datetime] = None,
) -> ProjectGateResult:
    """Gate B: may an active project stay active after an edit?

    Re-runs Gate A without the verifier. On failure suggests waiting when the
    next action's item is waiting, else clarifying.
    """
    result = check_gate_a(outcome, next_task, next_item, now=now)
    if result.passed:
        return result
    suggest: ProjectStatus = (
        "waiting" if next_item is not None and next_item.state == "waiting" else "clarifying"
    )
    return result.model_copy(update={"suggest_status": suggest})
