"""Capture, evidence, reminders and inbox dispositions."""

import logging
from datetime import datetime
from typing import Optional

from flowgate.core.errors import NotFoundError
from flowgate.core.gates import MIN_OUTCOME_LENGTH
from flowgate.core.rules import Disposition, disposition_target, is_plausible_next_action
from flowgate.database.sqlite import SqliteDB, new_id
from flowgate.models import (
    Artifact,
    ArtifactType,
    Item,
    ItemPatch,
    Reminder,
    TransitionPayload,
    TransitionResult,
)
from flowgate.utils.dates import as_utc, utcnow

from .projects import ProjectService
from .transition import FOLLOW_UP_KIND, TransitionService

logger = logging.getLogger(__name__)

FOLLOW_UP_SOURCE = "review_follow_up"


class ItemService:
    """Item-level operations. State changes are delegated to TransitionService."""

    def __init__(
        self,
        db: SqliteDB,
        transitions: TransitionService,
        projects: ProjectService,
    ) -> None:
        self._db = db
        self._transitions = transitions
        self._projects = projects

    def capture(self, title: str, body: str = "", source: str = "manual") -> Item:
        """Create a new inbox item.

        Raises:
            ValueError: Empty title.
        """
        title = title.strip()
        if not title:
            raise ValueError("title must not be empty")
        item = Item(id=new_id(), title=title, body=body.strip(), source=source)
        with self._db.session(write=True) as s:
            s.insert_item(item)
        logger.debug("Captured item %s", item.id)
        return item

    def get_item(self, item_id: str) -> Item:
        with self._db.session() as s:
            item = s.get_item(item_id)
        if item is None:
            raise NotFoundError("Item", item_id)
        return item

    def list_items(self, state=None) -> list[Item]:
        with self._db.session() as s:
            return s.list_items(state)

    def patch_item(self, item_id: str, patch: ItemPatch) -> Item:
        """Edit an item's title or body. State is never touched here.

        Raises:
            NotFoundError: Unknown item.
            ValueError: title set to an empty value.
        """
        changes = patch.changes()
        if "title" in changes:
            changes["title"] = (changes["title"] or "").strip()
            if not changes["title"]:
                raise ValueError("title must not be empty")
        if "body" in changes:
            changes["body"] = (changes["body"] or "").strip()

        with self._db.session(write=True) as s:
            item = s.get_item(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            return s.update_item(item.model_copy(update=changes))

    def add_artifact(
        self,
        item_id: str,
        artifact_type: ArtifactType = "note",
        content: Optional[str] = None,
        file_pointer: Optional[str] = None,
    ) -> Artifact:
        """Attach evidence to an item. Only non-empty artifacts count for Gate 2."""
        artifact = Artifact(
            id=new_id(),
            item_id=item_id,
            artifact_type=artifact_type,
            content=content,
            file_pointer=file_pointer,
        )
        with self._db.session(write=True) as s:
            if s.get_item(item_id) is None:
                raise NotFoundError("Item", item_id)
            s.insert_artifact(artifact)
        if not artifact.is_evidence:
            logger.info("Artifact %s on item %s is empty", artifact.id, item_id)
        return artifact

    def list_artifacts(self, item_id: str) -> list[Artifact]:
        with self._db.session() as s:
            return s.list_artifacts(item_id)

    def add_reminder(
        self, item_id: str, due_at: datetime, kind: str = FOLLOW_UP_KIND
    ) -> Reminder:
        reminder = Reminder(id=new_id(), item_id=item_id, due_at=as_utc(due_at), kind=kind)
        with self._db.session(write=True) as s:
            if s.get_item(item_id) is None:
                raise NotFoundError("Item", item_id)
            s.insert_reminder(reminder)
        return reminder

    def apply_disposition(
        self,
        item_id: str,
        disposition: Disposition,
        payload: Optional[TransitionPayload] = None,
        outcome_statement: Optional[str] = None,
        actor: str = "user",
        force: bool = False,
        override_reason: Optional[str] = None,
    ) -> TransitionResult:
        """Classify an item and move it through the state machine.

        For the project disposition the item moves to project and a project
        row is created: active when the outcome and payload.action_text would
        pass Gate A, clarifying otherwise. The new project id is returned in
        the result's project_id.
        """
        disposition = Disposition(disposition)
        item_type, target = disposition_target(disposition)
        payload = (payload or TransitionPayload()).model_copy(update={"item_type": item_type})

        result = self._transitions.execute_transition(
            item_id, target, payload, actor, force, override_reason
        )
        if not result.success or disposition is not Disposition.PROJECT:
            return result

        outcome = (outcome_statement or "").strip()
        action_text = (payload.action_text or "").strip()
        ready = (
            len(outcome) >= MIN_OUTCOME_LENGTH
            and bool(action_text)
            and is_plausible_next_action(action_text).valid
        )
        created = self._projects.create_project(
            outcome_statement=outcome or None,
            next_action_text=action_text if ready else None,
            status="active" if ready else "clarifying",
            item_id=item_id,
            actor=actor,
        )
        logger.info(
            "Item %s became project %s (%s)",
            item_id,
            created.project.id,
            created.project.status,
        )
        return result.model_copy(update={"project_id": created.project.id})

    def list_waiting_with_follow_up_due(self, now: Optional[datetime] = None) -> list[Item]:
        with self._db.session() as s:
            return s.list_waiting_with_follow_up_due(as_utc(now) if now else utcnow())

    def create_follow_up_task(self, item_id: str, actor: str = "user") -> TransitionResult:
        """Turn a waiting item into a concrete follow-up next action.

        A new actionable item is created; the waiting item is left as is.
        """
        waiting = self.get_item(item_id)
        if waiting.state != "waiting":
            raise ValueError(f"Item {item_id} is not waiting")

        who = (waiting.waiting_on or "").strip() or "someone"
        action_text = f"Follow up with {who} re: {waiting.title}"
        follow_up = self.capture(
            action_text,
            body=f"(Follow-up from: {waiting.title})",
            source=FOLLOW_UP_SOURCE,
        )
        # "Follow up" is not in the verb list; the text is system-made.
        return self._transitions.execute_transition(
            follow_up.id,
            "actionable",
            TransitionPayload(action_text=action_text),
            actor=actor,
            force=True,
            override_reason=f"Follow-up for waiting item {item_id}",
        )
