"""The single authorized path for item state changes.

Every call follows the same pipeline: load a snapshot, check the edge table,
ask the gate for a verdict (outside any transaction, since the verifier may
block on the network), then apply the mutation, related task/project/reminder
writes and the audit row in one write transaction. The item's version is
re-checked inside that transaction so two racing callers cannot both win.
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from flowgate.core.errors import NotFoundError
from flowgate.core.gates import GateVerdict, evaluate_actionable, evaluate_done
from flowgate.core.transitions import is_allowed
from flowgate.core.verifier import Verifier
from flowgate.database.sqlite import DBSession, SqliteDB, new_id
from flowgate.models import (
    Item,
    ItemState,
    Reminder,
    Task,
    TransitionPayload,
    TransitionResult,
)
from flowgate.utils.dates import utcnow

from .audit import audit_entry
from .projects import sync_for_next_action_task

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE = timedelta(hours=24)
FOLLOW_UP_KIND = "follow_up"


def _leaving_updates(item: Item, target: ItemState) -> tuple[dict, dict]:
    """Field resets owed when an item leaves waiting or snoozed.

    Returns (item_updates, task_updates).
    """
    item_updates: dict[str, Any] = {}
    task_updates: dict[str, Any] = {}
    if item.state == "waiting" and target != "waiting":
        item_updates.update(waiting_on=None, waiting_since=None)
    if item.state == "snoozed" and target != "snoozed":
        task_updates["snoozed_until"] = None
    return item_updates, task_updates


def _rejected(verdict: GateVerdict, item: Item, task: Optional[Task]) -> TransitionResult:
    return TransitionResult(
        success=False,
        reason=verdict.reason,
        item=item,
        task=task,
        gate_failed=verdict.gate_failed,
        failures=verdict.failures,
        missing_inputs=verdict.missing_inputs,
        vagueness_flags=verdict.vagueness_flags,
        suggested_questions=verdict.suggested_questions,
    )


class TransitionService:
    """Drives the item state machine and writes the audit trail."""

    def __init__(self, db: SqliteDB, verifier: Verifier) -> None:
        self._db = db
        self._verifier = verifier

    def execute_transition(
        self,
        item_id: str,
        target_state: ItemState,
        payload: Optional[TransitionPayload] = None,
        actor: str = "user",
        force: bool = False,
        override_reason: Optional[str] = None,
    ) -> TransitionResult:
        """Move an item to target_state if the edge and its gate allow it.

        Rejections come back as TransitionResult(success=False) and are
        audited. force skips the rule check and verifier and must carry an
        override_reason.

        Raises:
            ValueError: force without an override_reason.
            NotFoundError: Unknown item.
            StaleStateError: The item changed while the gate was running.
        """
        if force and not (override_reason or "").strip():
            raise ValueError("force=True requires an override_reason")
        payload = payload or TransitionPayload()

        with self._db.session() as s:
            item = s.get_item(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            task = s.get_task_for_item(item_id)
            artifacts = s.list_artifacts(item_id) if target_state == "done" else []

        if not is_allowed(item.state, target_state):
            logger.info(
                "Rejected %s -> %s for item %s: not allowed",
                item.state,
                target_state,
                item_id,
            )
            with self._db.session(write=True) as s:
                s.insert_audit(
                    audit_entry(
                        item,
                        target_state,
                        "rejected",
                        actor,
                        {"reason": "transition_not_allowed"},
                    )
                )
            return TransitionResult(
                success=False,
                reason=f"Transition from {item.state} to {target_state} is not allowed",
                item=item,
                task=task,
            )

        if target_state == "actionable":
            verdict = evaluate_actionable(payload.action_text, self._verifier, force)
            return self._apply_actionable(
                item, task, payload, verdict, actor, force, override_reason
            )
        if target_state == "done":
            verdict = evaluate_done(task, artifacts, item.title, self._verifier, force)
            return self._apply_done(item, task, verdict, actor, force, override_reason)
        if target_state == "snoozed":
            return self._apply_snoozed(item, task, payload, actor, force, override_reason)
        if target_state == "waiting":
            return self._apply_waiting(item, task, payload, actor, force, override_reason)
        return self._apply_direct(item, task, target_state, payload, actor, force, override_reason)

    # ---- Gate 1 ----
    def _apply_actionable(
        self,
        item: Item,
        task: Optional[Task],
        payload: TransitionPayload,
        verdict: GateVerdict,
        actor: str,
        force: bool,
        override_reason: Optional[str],
    ) -> TransitionResult:
        with self._db.session(write=True) as s:
            if not verdict.passed and not verdict.downgrade:
                s.insert_audit(
                    audit_entry(item, "actionable", "rejected", actor, verdict.audit_reasons)
                )
                return _rejected(verdict, item, task)

            # A rejected next action still keeps what the user typed.
            new_state: ItemState = "actionable" if verdict.passed else "clarifying"
            item_updates, task_updates = _leaving_updates(item, new_state)
            task = self._upsert_task(s, item, task, payload, task_updates)
            updated = s.update_item(
                item.model_copy(update={"type": "task", "state": new_state, **item_updates})
            )

            if verdict.passed:
                s.insert_audit(
                    audit_entry(
                        item,
                        "actionable",
                        "approved",
                        actor,
                        verdict.audit_reasons,
                        force,
                        override_reason,
                    )
                )
                logger.info("Item %s is actionable (override=%s)", item.id, force)
                return TransitionResult(success=True, item=updated, task=task)

            s.insert_audit(
                audit_entry(item, "actionable", "rejected", actor, verdict.audit_reasons)
            )
            sync_for_next_action_task(s, task.id, "clarifying")
            return _rejected(verdict, updated, task)

    def _upsert_task(
        self,
        s: DBSession,
        item: Item,
        task: Optional[Task],
        payload: TransitionPayload,
        extra: dict[str, Any],
    ) -> Task:
        fields: dict[str, Any] = {"action_text": (payload.action_text or "").strip()}
        for name in ("context", "energy", "estimated_minutes", "due_date"):
            value = getattr(payload, name)
            if value is not None:
                fields[name] = value
        fields.update(extra)
        if task is None:
            return s.insert_task(Task(id=new_id(), item_id=item.id, **fields))
        return s.update_task(task.model_copy(update=fields))

    # ---- Gate 2 ----
    def _apply_done(
        self,
        item: Item,
        task: Optional[Task],
        verdict: GateVerdict,
        actor: str,
        force: bool,
        override_reason: Optional[str],
    ) -> TransitionResult:
        with self._db.session(write=True) as s:
            if not verdict.passed or task is None:
                s.insert_audit(audit_entry(item, "done", "rejected", actor, verdict.audit_reasons))
                return _rejected(verdict, item, task)

            now = utcnow()
            item_updates, task_updates = _leaving_updates(item, "done")
            updated = s.update_item(item.model_copy(update={"state": "done", **item_updates}))
            task = s.update_task(
                task.model_copy(
                    update={"status": "completed", "unverified": force, **task_updates}
                )
            )

            project_id = None
            owner = s.find_project_by_next_action(task.id)
            if owner is not None:
                project_id = owner.id
                s.update_project(
                    owner.model_copy(
                        update={"next_action_task_id": None, "last_progress_at": now}
                    )
                )
            elif task.project_id:
                parent = s.get_project(task.project_id)
                if parent is not None:
                    s.update_project(parent.model_copy(update={"last_progress_at": now}))

            s.insert_audit(
                audit_entry(item, "done", "approved", actor, verdict.audit_reasons, force, override_reason)
            )

        logger.info("Item %s done (unverified=%s)", item.id, force)
        return TransitionResult(
            success=True,
            item=updated,
            task=task,
            project_id=project_id,
            next_action_required=project_id is not None,
        )

    # ---- Snoozed ----
    def _apply_snoozed(
        self,
        item: Item,
        task: Optional[Task],
        payload: TransitionPayload,
        actor: str,
        force: bool,
        override_reason: Optional[str],
    ) -> TransitionResult:
        with self._db.session(write=True) as s:
            if payload.snoozed_until is None and not force:
                s.insert_audit(
                    audit_entry(item, "snoozed", "rejected", actor, {"reason": "missing_snoozedUntil"})
                )
                return TransitionResult(
                    success=False,
                    reason="snoozedUntil (wake time) is required for snoozed",
                    item=item,
                    task=task,
                    missing_inputs=["snoozedUntil"],
                )

            wake_at = payload.snoozed_until or utcnow() + DEFAULT_SNOOZE
            item_updates, _ = _leaving_updates(item, "snoozed")
            updated = s.update_item(item.model_copy(update={"state": "snoozed", **item_updates}))
            if task is not None:
                task = s.update_task(task.model_copy(update={"snoozed_until": wake_at}))
            s.insert_audit(
                audit_entry(
                    item,
                    "snoozed",
                    "approved",
                    actor,
                    {"snoozedUntil": wake_at.isoformat()},
                    force,
                    override_reason,
                )
            )
            if task is not None:
                sync_for_next_action_task(s, task.id, "snoozed")
        return TransitionResult(success=True, item=updated, task=task)

    # ---- Waiting ----
    def _apply_waiting(
        self,
        item: Item,
        task: Optional[Task],
        payload: TransitionPayload,
        actor: str,
        force: bool,
        override_reason: Optional[str],
    ) -> TransitionResult:
        with self._db.session(write=True) as s:
            _, task_updates = _leaving_updates(item, "waiting")
            item_updates: dict[str, Any] = {
                "state": "waiting",
                "waiting_on": payload.waiting_on,
                "waiting_since": utcnow(),
            }
            if payload.item_type is not None:
                item_updates["type"] = payload.item_type
            updated = s.update_item(item.model_copy(update=item_updates))
            if task is not None and task_updates:
                task = s.update_task(task.model_copy(update=task_updates))

            if payload.follow_up_at is not None:
                existing = s.find_reminder(item.id, FOLLOW_UP_KIND)
                if existing is not None:
                    s.update_reminder_due(existing.id, payload.follow_up_at)
                else:
                    s.insert_reminder(
                        Reminder(
                            id=new_id(),
                            item_id=item.id,
                            due_at=payload.follow_up_at,
                            kind=FOLLOW_UP_KIND,
                        )
                    )

            s.insert_audit(
                audit_entry(
                    item,
                    "waiting",
                    "approved",
                    actor,
                    {
                        "waitingOn": payload.waiting_on,
                        "followUpAt": (
                            payload.follow_up_at.isoformat() if payload.follow_up_at else None
                        ),
                    },
                    force,
                    override_reason,
                )
            )
            if task is not None:
                sync_for_next_action_task(s, task.id, "waiting")
        return TransitionResult(success=True, item=updated, task=task)

    # ---- clarifying / archived / project / reference / someday ----
    def _apply_direct(
        self,
        item: Item,
        task: Optional[Task],
        target: ItemState,
        payload: TransitionPayload,
        actor: str,
        force: bool,
        override_reason: Optional[str],
    ) -> TransitionResult:
        with self._db.session(write=True) as s:
            item_updates, task_updates = _leaving_updates(item, target)
            item_updates["state"] = target
            reasons = None
            if payload.item_type is not None:
                item_updates["type"] = payload.item_type
                reasons = {"itemType": payload.item_type}
            updated = s.update_item(item.model_copy(update=item_updates))
            if task is not None and task_updates:
                task = s.update_task(task.model_copy(update=task_updates))
            s.insert_audit(
                audit_entry(item, target, "approved", actor, reasons, force, override_reason)
            )
            if task is not None:
                sync_for_next_action_task(s, task.id, target)
        return TransitionResult(success=True, item=updated, task=task)
