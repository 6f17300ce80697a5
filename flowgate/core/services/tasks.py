"""Task edits, the Now-list candidate pool and snooze wake-up."""

import logging
from datetime import datetime
from typing import Any, Optional

from flowgate.core.errors import NotFoundError, StaleStateError
from flowgate.core.gates import check_gate_b
from flowgate.database.sqlite import SqliteDB
from flowgate.models import RankCandidate, Task, TaskPatch, TransitionPayload
from flowgate.utils.dates import as_utc, utcnow

from .projects import SYSTEM_ACTOR, sync_project_item
from .transition import TransitionService

logger = logging.getLogger(__name__)

SNOOZE_EXPIRED = "Snooze expired"


class TaskService:
    """Operations on the actionable unit."""

    def __init__(self, db: SqliteDB, transitions: TransitionService) -> None:
        self._db = db
        self._transitions = transitions

    def get_task(self, task_id: str) -> Task:
        with self._db.session() as s:
            task = s.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def patch_task(self, task_id: str, patch: TaskPatch, actor: str = "user") -> Task:
        """Apply a partial edit to a task.

        Changing the text of an active project's next action re-runs Gate B on
        that project, which may move it to waiting or clarifying.

        Raises:
            NotFoundError: Unknown task.
            ValueError: action_text set to an empty value.
        """
        changes = patch.changes()
        if "action_text" in changes:
            text = (changes["action_text"] or "").strip()
            if not text:
                raise ValueError("action_text must not be empty")
            changes["action_text"] = text
        if "priority" in changes:
            changes["priority"] = changes["priority"] or 0
        for name in ("due_date", "snoozed_until"):
            if changes.get(name) is not None:
                changes[name] = as_utc(changes[name])

        with self._db.session(write=True) as s:
            task = s.get_task(task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            updated = s.update_task(task.model_copy(update=changes))

            if "action_text" not in changes:
                return updated
            project = s.find_project_by_next_action(task_id)
            if project is None or project.status != "active":
                return updated
            item = s.get_item(updated.item_id) if updated.item_id else None
            gate = check_gate_b(project.outcome_statement, updated, item)
            if not gate.passed and gate.suggest_status:
                logger.info(
                    "Gate B moved project %s to %s: %s",
                    project.id,
                    gate.suggest_status,
                    gate.reason,
                )
                project_updates: dict[str, Any] = {"status": gate.suggest_status}
                if gate.suggest_status == "clarifying":
                    project_updates["next_action_task_id"] = None
                moved = s.update_project(project.model_copy(update=project_updates))
                sync_project_item(s, moved, actor)
        return updated

    def list_rankable(self, now: Optional[datetime] = None) -> list[RankCandidate]:
        """Build ranking candidates for every task eligible for the Now list."""
        now = as_utc(now) if now else utcnow()
        candidates = []
        with self._db.session() as s:
            projects: dict[str, Any] = {}
            for task in s.list_rankable_tasks(now):
                project = None
                if task.project_id:
                    if task.project_id not in projects:
                        projects[task.project_id] = s.get_project(task.project_id)
                    project = projects[task.project_id]
                next_action_of = s.find_project_by_next_action(task.id)
                count = (
                    s.count_tasks_for_project(next_action_of.id) if next_action_of else 0
                )
                candidates.append(
                    RankCandidate(
                        task=task,
                        project=project,
                        next_action_of=next_action_of,
                        next_action_project_task_count=count,
                    )
                )
        return candidates

    def wake_snoozed(self, now: Optional[datetime] = None) -> list[str]:
        """Move every snoozed item whose wake time has passed back to actionable.

        Goes through TransitionService as the system actor, so each wake-up is
        audited. Returns the ids of the woken tasks.
        """
        now = as_utc(now) if now else utcnow()
        with self._db.session() as s:
            due = s.list_due_snoozed_tasks(now)

        woken = []
        for task in due:
            try:
                result = self._transitions.execute_transition(
                    task.item_id,
                    "actionable",
                    TransitionPayload(action_text=task.action_text),
                    actor=SYSTEM_ACTOR,
                    force=True,
                    override_reason=SNOOZE_EXPIRED,
                )
            except StaleStateError as e:
                logger.warning("Skipped waking task %s: %s", task.id, e)
                continue
            if result.success:
                woken.append(task.id)
            else:
                logger.warning("Could not wake task %s: %s", task.id, result.reason)
        if woken:
            logger.info("Woke %d snoozed task(s)", len(woken))
        return woken
