"""Project lifecycle: creation, edits under Gate A/B, completion, reviews.

A project's item is not moved through the item edge table; its state follows
the project's status (see project_status_to_item_state) and each such change
is still written to the audit trail.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Literal, Optional

from flowgate.core.errors import NotFoundError
from flowgate.core.gates import MIN_OUTCOME_LENGTH, check_gate_a, check_gate_b
from flowgate.core.rules import is_plausible_next_action
from flowgate.core.transitions import is_project_transition_allowed
from flowgate.core.verifier import Verifier
from flowgate.database.sqlite import DBSession, SqliteDB, new_id
from flowgate.models import (
    ItemState,
    Project,
    ProjectPatch,
    ProjectResult,
    ProjectStatus,
    Task,
)
from flowgate.utils.dates import as_utc, utcnow

from .audit import audit_entry

logger = logging.getLogger(__name__)

RemainingTaskPolicy = Literal["strict", "flexible"]

SYSTEM_ACTOR = "system"

# Item states that knock a next action out of an active project.
_CLARIFY_TRIGGERS = frozenset({"snoozed", "clarifying", "archived", "reference", "someday"})

_STALL_CANDIDATES: list[ProjectStatus] = ["active", "waiting", "on_hold"]
_NEEDS_NEXT_ACTION: list[ProjectStatus] = ["active", "waiting", "on_hold", "clarifying"]


def project_status_to_item_state(status: ProjectStatus) -> ItemState:
    match status:
        case "clarifying" | "active" | "on_hold":
            return "project"
        case "waiting":
            return "waiting"
        case "someday":
            return "someday"
        case "done":
            return "done"
        case "archived":
            return "archived"
    return "project"


def sync_for_next_action_task(
    s: DBSession, task_id: str, new_item_state: ItemState
) -> Optional[Project]:
    """Follow a next-action task's item state with its project's status.

    Waiting pulls the project to waiting; snoozed, clarifying, archived,
    reference or someday drop the next-action link and send the project back
    to clarifying. Each move happens only if the project table allows it, and
    the project's own item follows the new status.
    """
    project = s.find_project_by_next_action(task_id)
    if project is None:
        return None

    updates: dict[str, Any] = {"last_progress_at": utcnow()}
    if new_item_state == "waiting":
        if not is_project_transition_allowed(project.status, "waiting"):
            return None
        logger.info("Project %s follows next action into waiting", project.id)
        updates["status"] = "waiting"
    elif new_item_state in _CLARIFY_TRIGGERS:
        if not is_project_transition_allowed(project.status, "clarifying"):
            return None
        logger.info(
            "Project %s back to clarifying: next action went %s",
            project.id,
            new_item_state,
        )
        updates.update(status="clarifying", next_action_task_id=None)
    else:
        return None

    moved = s.update_project(project.model_copy(update=updates))
    sync_project_item(s, moved, SYSTEM_ACTOR)
    return moved


def sync_project_item(s: DBSession, project: Project, actor: str) -> None:
    """Make the project's item mirror the project status."""
    if project.item_id is None:
        return
    item = s.get_item(project.item_id)
    if item is None:
        return
    target = project_status_to_item_state(project.status)
    if item.state == target and item.type == "project":
        return
    s.update_item(item.model_copy(update={"type": "project", "state": target}))
    if item.state != target:
        s.insert_audit(
            audit_entry(
                item,
                target,
                "approved",
                actor,
                {"reason": "project_status_sync", "projectStatus": project.status},
            )
        )


class ProjectService:
    """Project operations that enforce the active-project gates."""

    def __init__(self, db: SqliteDB, verifier: Verifier) -> None:
        self._db = db
        self._verifier = verifier

    def get_project(self, project_id: str) -> Project:
        with self._db.session() as s:
            project = s.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def list_projects(
        self, statuses: Optional[list[ProjectStatus]] = None
    ) -> list[Project]:
        with self._db.session() as s:
            return s.list_projects(statuses)

    def create_project(
        self,
        outcome_statement: Optional[str] = None,
        next_action_text: Optional[str] = None,
        status: ProjectStatus = "clarifying",
        item_id: Optional[str] = None,
        due_date: Optional[datetime] = None,
        priority: int = 0,
        theme_tag: Optional[str] = None,
        actor: str = "user",
    ) -> ProjectResult:
        """Create a project; active requires an outcome and a rule-valid next action.

        The next action becomes a new task owned by the project.
        """
        outcome = (outcome_statement or "").strip()
        action_text = (next_action_text or "").strip()

        if status == "active":
            if len(outcome) < MIN_OUTCOME_LENGTH:
                return ProjectResult(
                    success=False,
                    reason=(
                        "Outcome statement is required and must be at least "
                        f"{MIN_OUTCOME_LENGTH} characters for active."
                    ),
                )
            if not action_text:
                return ProjectResult(success=False, reason="Next action is required for active.")
            rule = is_plausible_next_action(action_text)
            if not rule.valid:
                return ProjectResult(success=False, reason=rule.reason)

        project = Project(
            id=new_id(),
            item_id=item_id,
            outcome_statement=outcome or None,
            status=status,
            due_date=due_date,
            priority=priority,
            theme_tag=(theme_tag or "").strip() or None,
            last_progress_at=utcnow(),
        )
        with self._db.session(write=True) as s:
            if item_id is not None and s.get_item(item_id) is None:
                raise NotFoundError("Item", item_id)
            task = None
            if status == "active":
                task = s.insert_task(
                    Task(id=new_id(), action_text=action_text, project_id=project.id)
                )
                project = project.model_copy(update={"next_action_task_id": task.id})
            s.insert_project(project)
            sync_project_item(s, project, actor)

        logger.info("Created project %s (%s)", project.id, status)
        return ProjectResult(success=True, project=project, task=task)

    def assign_item(self, project_id: str, item_id: str, actor: str = "user") -> ProjectResult:
        """Attach an existing item to an item-less project.

        The item becomes type project and its state follows the project's
        status. An item-less next-action task stays item-less.

        Raises:
            NotFoundError: Unknown project or item.
        """
        with self._db.session(write=True) as s:
            project = s.get_project(project_id)
            if project is None:
                raise NotFoundError("Project", project_id)
            if s.get_item(item_id) is None:
                raise NotFoundError("Item", item_id)
            if project.item_id is not None:
                return ProjectResult(
                    success=False,
                    reason="Project already has an item assigned.",
                    project=project,
                )
            owner = s.find_project_by_item(item_id)
            if owner is not None:
                return ProjectResult(
                    success=False,
                    reason=f"Item is already assigned to project {owner.id}.",
                    project=project,
                )
            updated = s.update_project(
                project.model_copy(update={"item_id": item_id, "last_progress_at": utcnow()})
            )
            sync_project_item(s, updated, actor)
        logger.info("Assigned item %s to project %s", item_id, project_id)
        return ProjectResult(success=True, project=updated)

    def patch_project(
        self, project_id: str, patch: ProjectPatch, actor: str = "user"
    ) -> ProjectResult:
        """Apply a partial edit.

        Status changes must be legal project edges; entering active runs Gate A.
        Edits to the outcome or next action of an active project run Gate B,
        which downgrades instead of refusing.
        """
        changes = patch.changes()
        now = utcnow()

        with self._db.session(write=True) as s:
            project = s.get_project(project_id)
            if project is None:
                raise NotFoundError("Project", project_id)

            updates: dict[str, Any] = {}
            if "outcome_statement" in changes:
                updates["outcome_statement"] = (changes["outcome_statement"] or "").strip() or None
                updates["last_progress_at"] = now
            for name in ("due_date", "waiting_since", "follow_up_at"):
                if name in changes:
                    updates[name] = changes[name]
            for name in ("theme_tag", "waiting_on"):
                if name in changes:
                    updates[name] = (changes[name] or "").strip() or None
            if "priority" in changes:
                updates["priority"] = changes["priority"] or 0
            if "focus_this_week" in changes:
                updates["focus_this_week"] = bool(changes["focus_this_week"])

            outcome = updates.get("outcome_statement", project.outcome_statement)
            next_id = project.next_action_task_id
            new_task: Optional[Task] = None

            next_text = (changes.get("next_action_text") or "").strip()
            if patch.mentions("next_action_text"):
                rule = is_plausible_next_action(next_text)
                if not rule.valid:
                    return ProjectResult(success=False, reason=rule.reason, project=project)
                new_task = Task(
                    id=new_id(),
                    action_text=next_text,
                    item_id=None,
                    project_id=project.id,
                )
                next_id = new_task.id
            elif patch.mentions("next_action_task_id"):
                next_id = changes["next_action_task_id"]
            if next_id != project.next_action_task_id:
                updates["next_action_task_id"] = next_id
                updates["last_progress_at"] = now

            target = changes.get("status")
            if target is not None and target != project.status:
                if not is_project_transition_allowed(project.status, target):
                    return ProjectResult(
                        success=False,
                        reason=f"Transition from {project.status} to {target} is not allowed.",
                        project=project,
                    )
                if target == "active":
                    next_task, next_item = self._resolve_next(s, next_id, new_task)
                    gate = check_gate_a(outcome, next_task, next_item)
                    if not gate.passed:
                        logger.info("Gate A refused project %s: %s", project.id, gate.reason)
                        return ProjectResult(success=False, reason=gate.reason, project=project)
                updates["status"] = target

            edited = {"outcome_statement", "next_action_task_id", "next_action_text"} & set(changes)
            if updates.get("status", project.status) == "active" and edited and "status" not in updates:
                next_task, next_item = self._resolve_next(s, next_id, new_task)
                gate = check_gate_b(outcome, next_task, next_item)
                if not gate.passed and gate.suggest_status:
                    logger.info(
                        "Gate B moved project %s to %s: %s",
                        project.id,
                        gate.suggest_status,
                        gate.reason,
                    )
                    updates["status"] = gate.suggest_status
                    if gate.suggest_status == "clarifying":
                        updates["next_action_task_id"] = None

            if new_task is not None:
                s.insert_task(new_task)
            updated = s.update_project(project.model_copy(update=updates))
            if "status" in updates:
                sync_project_item(s, updated, actor)

        return ProjectResult(success=True, project=updated, task=new_task)

    def _resolve_next(
        self, s: DBSession, next_id: Optional[str], pending: Optional[Task]
    ):
        if pending is not None and pending.id == next_id:
            return pending, None
        if next_id is None:
            return None, None
        task = s.get_task(next_id)
        item = s.get_item(task.item_id) if task is not None and task.item_id else None
        return task, item

    def activate_project(
        self, project_id: str, run_verifier: bool = True, actor: str = "user"
    ) -> ProjectResult:
        """Move a project to active through Gate A, optionally with the verifier."""
        with self._db.session() as s:
            project = s.get_project(project_id)
            if project is None:
                raise NotFoundError("Project", project_id)
            next_task, next_item = self._resolve_next(s, project.next_action_task_id, None)

        if not is_project_transition_allowed(project.status, "active"):
            return ProjectResult(
                success=False,
                reason=f"Transition from {project.status} to active is not allowed.",
                project=project,
            )
        gate = check_gate_a(
            project.outcome_statement,
            next_task,
            next_item,
            verifier=self._verifier if run_verifier else None,
        )
        if not gate.passed:
            logger.info("Gate A refused project %s: %s", project.id, gate.reason)
            return ProjectResult(
                success=False,
                reason=gate.reason,
                project=project,
                verifier_failures=gate.verifier_failures,
            )

        with self._db.session(write=True) as s:
            updated = s.update_project(
                project.model_copy(update={"status": "active", "last_progress_at": utcnow()})
            )
            sync_project_item(s, updated, actor)
        return ProjectResult(success=True, project=updated, task=next_task)

    def complete_project(
        self,
        project_id: str,
        confirm_outcome: bool,
        remaining_task_policy: RemainingTaskPolicy = "flexible",
        actor: str = "user",
    ) -> ProjectResult:
        """Mark a project done once the user confirms the outcome.

        Under the strict policy every task must be completed first.
        """
        with self._db.session(write=True) as s:
            project = s.get_project(project_id)
            if project is None:
                raise NotFoundError("Project", project_id)
            if not is_project_transition_allowed(project.status, "done"):
                return ProjectResult(
                    success=False,
                    reason=f"Cannot mark project done from {project.status}.",
                    project=project,
                )
            if not confirm_outcome:
                return ProjectResult(
                    success=False,
                    reason="confirm_outcome is required to mark project done.",
                    project=project,
                )
            remaining = s.list_tasks_for_project(project_id, include_completed=False)
            if remaining_task_policy == "strict" and remaining:
                return ProjectResult(
                    success=False,
                    reason="Strict policy: complete or archive all tasks before marking project done.",
                    project=project,
                    remaining_tasks=remaining,
                )
            updated = s.update_project(
                project.model_copy(update={"status": "done", "last_progress_at": utcnow()})
            )
            sync_project_item(s, updated, actor)
        logger.info("Project %s done (%d open tasks left)", project_id, len(remaining))
        return ProjectResult(success=True, project=updated, remaining_tasks=remaining)

    def list_stalled_projects(
        self, days: int = 14, now: Optional[datetime] = None
    ) -> list[Project]:
        """Live projects with no progress in the last `days` days."""
        cutoff = (as_utc(now) if now else utcnow()) - timedelta(days=days)
        stalled = []
        with self._db.session() as s:
            for project in s.list_projects(_STALL_CANDIDATES):
                last = project.last_progress_at
                if last is None and project.next_action_task_id:
                    next_task = s.get_task(project.next_action_task_id)
                    last = next_task.updated_at if next_task else None
                if (last or project.updated_at) < cutoff:
                    stalled.append(project)
        return stalled

    def list_projects_without_next_action(self) -> list[Project]:
        with self._db.session() as s:
            return [
                p for p in s.list_projects(_NEEDS_NEXT_ACTION) if p.next_action_task_id is None
            ]
