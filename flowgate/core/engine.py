"""Main workflow: capture -> clarify through the gates -> work the Now list."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from flowgate.config import Settings, get_settings
from flowgate.core.ranking import rank_and_tag
from flowgate.core.ranking_config import ConfigStore
from flowgate.core.services import (
    ItemService,
    ProjectService,
    ReviewService,
    TaskService,
    TransitionService,
)
from flowgate.core.verifier import Verifier, build_verifier
from flowgate.database.sqlite import SqliteDB
from flowgate.models import (
    DailySnapshot,
    Deadlines,
    ExcludedTask,
    Item,
    RankedTask,
    RankFilters,
    TransitionAuditLog,
    WeeklySnapshot,
)
from flowgate.models.ranking import FilterMode
from flowgate.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

SNOOZED_TODAY = "Snoozed until today"


class NowView(BaseModel):
    """What the user should work on now, plus waiting items that need a nudge."""

    ranked: list[RankedTask] = Field(default_factory=list)
    excluded: list[ExcludedTask] = Field(default_factory=list)
    follow_ups_due: list[Item] = Field(default_factory=list)
    woken_task_ids: list[str] = Field(default_factory=list)


class Engine:
    """Wires settings, storage, verifier and ranking config into the services."""

    def __init__(
        self,
        db_path: Optional[Path] = None,
        settings: Optional[Settings] = None,
        verifier: Optional[Verifier] = None,
        ranking_config: Optional[ConfigStore] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._db = SqliteDB(db_path or self._settings.db_path)
        self._db.init_db()
        self._verifier = verifier or build_verifier(self._settings)
        self._ranking_config = ranking_config or ConfigStore(
            self._settings.ranking_config_path
        )

        self.transitions = TransitionService(self._db, self._verifier)
        self.projects = ProjectService(self._db, self._verifier)
        self.items = ItemService(self._db, self.transitions, self.projects)
        self.tasks = TaskService(self._db, self.transitions)
        self.reviews = ReviewService(self._db, self.projects)

    @property
    def db(self) -> SqliteDB:
        return self._db

    @property
    def ranking_config(self) -> ConfigStore:
        return self._ranking_config

    def now(
        self,
        filters: Optional[RankFilters] = None,
        filter_mode: Optional[FilterMode] = None,
        now: Optional[datetime] = None,
    ) -> NowView:
        """Build the Now list.

        Snoozed tasks whose wake time has passed are moved back to actionable
        first and tagged "Snoozed until today".
        """
        now = as_utc(now) if now else utcnow()
        config = self._ranking_config.get()

        woken = set(self.tasks.wake_snoozed(now))
        result = rank_and_tag(
            self.tasks.list_rankable(now), config, filters, filter_mode, now
        )

        ranked = []
        for entry in result.ranked:
            if entry.task.id in woken and SNOOZED_TODAY not in entry.reason_tags:
                tags = [SNOOZED_TODAY] + entry.reason_tags
                entry = entry.model_copy(update={"reason_tags": tags[: config.tags.max_tags]})
            ranked.append(entry)

        return NowView(
            ranked=ranked,
            excluded=result.excluded,
            follow_ups_due=self.items.list_waiting_with_follow_up_due(now),
            woken_task_ids=sorted(woken),
        )

    def audit_trail(self, item_id: Optional[str] = None, limit: int = 100) -> list[TransitionAuditLog]:
        """Audit rows, oldest first, optionally for one item."""
        with self._db.session() as s:
            return s.list_audit(item_id, limit)

    def deadlines(self, now: Optional[datetime] = None) -> Deadlines:
        return self.reviews.deadlines(now)

    def daily_review(self, now: Optional[datetime] = None) -> DailySnapshot:
        """Daily snapshot, after waking snoozed tasks that are due back."""
        now = as_utc(now) if now else utcnow()
        self.tasks.wake_snoozed(now)
        return self.reviews.daily_snapshot(now)

    def weekly_review(self, now: Optional[datetime] = None) -> WeeklySnapshot:
        return self.reviews.weekly_snapshot(now)
