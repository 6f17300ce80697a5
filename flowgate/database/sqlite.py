"""Relational wrapper for SQLite (items, tasks, projects, evidence, audit)."""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from flowgate.core.errors import StaleStateError
from flowgate.models import (
    Artifact,
    Item,
    ItemState,
    Project,
    ProjectStatus,
    Reminder,
    Task,
    TransitionAuditLog,
)
from flowgate.utils.dates import as_utc, utcnow

_SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    body TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL,
    state TEXT NOT NULL,
    source TEXT NOT NULL DEFAULT 'manual',
    waiting_on TEXT,
    waiting_since DATETIME,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    version INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_items_state ON items(state);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    item_id TEXT UNIQUE REFERENCES items(id),
    project_id TEXT REFERENCES projects(id),
    action_text TEXT NOT NULL,
    context TEXT,
    energy TEXT,
    estimated_minutes INTEGER,
    due_date DATETIME,
    snoozed_until DATETIME,
    pinned_order INTEGER,
    manual_rank INTEGER,
    priority INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active',
    unverified INTEGER NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id);
CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);

CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    item_id TEXT REFERENCES items(id),
    outcome_statement TEXT,
    status TEXT NOT NULL,
    next_action_task_id TEXT,
    due_date DATETIME,
    priority INTEGER NOT NULL DEFAULT 0,
    focus_this_week INTEGER NOT NULL DEFAULT 0,
    last_progress_at DATETIME,
    theme_tag TEXT,
    waiting_on TEXT,
    waiting_since DATETIME,
    follow_up_at DATETIME,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    version INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_projects_next_action ON projects(next_action_task_id);
CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status);

CREATE TABLE IF NOT EXISTS reminders (
    id TEXT PRIMARY KEY,
    item_id TEXT NOT NULL REFERENCES items(id),
    due_at DATETIME NOT NULL,
    kind TEXT NOT NULL,
    created_at DATETIME NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reminders_item ON reminders(item_id, kind);

CREATE TABLE IF NOT EXISTS artifacts (
    id TEXT PRIMARY KEY,
    item_id TEXT NOT NULL REFERENCES items(id),
    artifact_type TEXT NOT NULL,
    content TEXT,
    file_pointer TEXT,
    created_at DATETIME NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_artifacts_item ON artifacts(item_id, created_at);

CREATE TABLE IF NOT EXISTS transition_audit_log (
    id TEXT PRIMARY KEY,
    seq INTEGER NOT NULL,
    item_id TEXT NOT NULL,
    from_state TEXT NOT NULL,
    to_state_attempted TEXT NOT NULL,
    decision TEXT NOT NULL,
    actor TEXT NOT NULL,
    reasons TEXT,
    override INTEGER NOT NULL DEFAULT 0,
    override_reason TEXT,
    created_at DATETIME NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_item ON transition_audit_log(item_id, seq);

CREATE TRIGGER IF NOT EXISTS audit_no_update
BEFORE UPDATE ON transition_audit_log
BEGIN
    SELECT RAISE(ABORT, 'transition_audit_log is append-only');
END;

CREATE TRIGGER IF NOT EXISTS audit_no_delete
BEFORE DELETE ON transition_audit_log
BEGIN
    SELECT RAISE(ABORT, 'transition_audit_log is append-only');
END;
"""


def new_id() -> str:
    return str(uuid.uuid4())


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return as_utc(dt).isoformat() if dt else None


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string, returning None for invalid input."""
    if not s:
        return None
    try:
        return as_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except (ValueError, AttributeError):
        return None


class SqliteDB:
    """SQLite wrapper. All SQL stays in this module.

    Every unit of work runs inside `session()`. Write sessions take the
    database write lock up front (BEGIN IMMEDIATE) so a load-validate-mutate-
    audit sequence cannot interleave with another writer.
    """

    def __init__(self, db_path: Path) -> None:
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def init_db(self) -> None:
        """Create tables, indexes and audit triggers if they do not exist."""
        with sqlite3.connect(self._path) as conn:
            conn.executescript(_SCHEMA)
            conn.commit()

    @contextmanager
    def session(self, write: bool = False) -> Iterator["DBSession"]:
        """Open one transaction; commit on success, roll back on any error."""
        conn = sqlite3.connect(self._path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield DBSession(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()


class DBSession:
    """Repository operations bound to a single open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ---- Items ----
    def insert_item(self, item: Item) -> Item:
        self._conn.execute(
            """
            INSERT INTO items (id, title, body, type, state, source, waiting_on,
                               waiting_since, created_at, updated_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.id,
                item.title,
                item.body,
                item.type,
                item.state,
                item.source,
                item.waiting_on,
                _iso(item.waiting_since),
                _iso(item.created_at),
                _iso(item.updated_at),
                item.version,
            ),
        )
        return item

    def get_item(self, item_id: str) -> Optional[Item]:
        row = self._conn.execute(
            "SELECT * FROM items WHERE id = ?", (item_id,)
        ).fetchone()
        return _row_to_item(row) if row else None

    def update_item(self, item: Item) -> Item:
        """Persist an item if nobody else wrote it since it was loaded.

        Raises:
            StaleStateError: If the stored version differs from item.version.
        """
        now = utcnow()
        cursor = self._conn.execute(
            """
            UPDATE items SET title=?, body=?, type=?, state=?, source=?,
                             waiting_on=?, waiting_since=?, updated_at=?,
                             version=version + 1
            WHERE id = ? AND version = ?
            """,
            (
                item.title,
                item.body,
                item.type,
                item.state,
                item.source,
                item.waiting_on,
                _iso(item.waiting_since),
                _iso(now),
                item.id,
                item.version,
            ),
        )
        if cursor.rowcount == 0:
            raise StaleStateError("Item", item.id, item.version)
        return item.model_copy(update={"updated_at": now, "version": item.version + 1})

    def list_items(self, state: Optional[ItemState] = None) -> list[Item]:
        if state is None:
            rows = self._conn.execute(
                "SELECT * FROM items ORDER BY updated_at DESC"
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM items WHERE state = ? ORDER BY updated_at DESC",
                (state,),
            ).fetchall()
        return [_row_to_item(r) for r in rows]

    # ---- Tasks ----
    def insert_task(self, task: Task) -> Task:
        self._conn.execute(
            """
            INSERT INTO tasks (id, item_id, project_id, action_text, context, energy,
                               estimated_minutes, due_date, snoozed_until, pinned_order,
                               manual_rank, priority, status, unverified,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.item_id,
                task.project_id,
                task.action_text,
                task.context,
                task.energy,
                task.estimated_minutes,
                _iso(task.due_date),
                _iso(task.snoozed_until),
                task.pinned_order,
                task.manual_rank,
                task.priority,
                task.status,
                int(task.unverified),
                _iso(task.created_at),
                _iso(task.updated_at),
            ),
        )
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        row = self._conn.execute(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()
        return _row_to_task(row) if row else None

    def get_task_for_item(self, item_id: str) -> Optional[Task]:
        row = self._conn.execute(
            "SELECT * FROM tasks WHERE item_id = ?", (item_id,)
        ).fetchone()
        return _row_to_task(row) if row else None

    def update_task(self, task: Task) -> Task:
        now = utcnow()
        self._conn.execute(
            """
            UPDATE tasks SET item_id=?, project_id=?, action_text=?, context=?,
                             energy=?, estimated_minutes=?, due_date=?,
                             snoozed_until=?, pinned_order=?, manual_rank=?,
                             priority=?, status=?, unverified=?, updated_at=?
            WHERE id = ?
            """,
            (
                task.item_id,
                task.project_id,
                task.action_text,
                task.context,
                task.energy,
                task.estimated_minutes,
                _iso(task.due_date),
                _iso(task.snoozed_until),
                task.pinned_order,
                task.manual_rank,
                task.priority,
                task.status,
                int(task.unverified),
                _iso(now),
                task.id,
            ),
        )
        return task.model_copy(update={"updated_at": now})

    def list_tasks_for_project(
        self, project_id: str, include_completed: bool = True
    ) -> list[Task]:
        query = "SELECT * FROM tasks WHERE project_id = ?"
        if not include_completed:
            query += " AND status != 'completed'"
        rows = self._conn.execute(query + " ORDER BY created_at ASC", (project_id,))
        return [_row_to_task(r) for r in rows.fetchall()]

    def count_tasks_for_project(self, project_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM tasks WHERE project_id = ?", (project_id,)
        ).fetchone()
        return int(row[0])

    def list_tasks_with_items(self) -> list[tuple[Task, Optional[Item]]]:
        """Every task paired with its linked item (None for item-less tasks)."""
        rows = self._conn.execute("SELECT * FROM tasks ORDER BY created_at ASC").fetchall()
        tasks = [_row_to_task(r) for r in rows]
        return [(t, self.get_item(t.item_id) if t.item_id else None) for t in tasks]

    def list_rankable_tasks(self, now: datetime) -> list[Task]:
        """Active tasks eligible for the Now list.

        Tasks whose item is actionable (and not still snoozed), plus item-less
        tasks of active projects.
        """
        rows = self._conn.execute(
            """
            SELECT t.* FROM tasks t
            LEFT JOIN items i ON i.id = t.item_id
            LEFT JOIN projects p ON p.id = t.project_id
            WHERE t.status = 'active'
              AND (i.state = 'actionable'
                   OR (t.item_id IS NULL AND p.status = 'active'))
            ORDER BY t.created_at ASC
            """
        ).fetchall()
        tasks = [_row_to_task(r) for r in rows]
        return [
            t for t in tasks if t.snoozed_until is None or t.snoozed_until <= as_utc(now)
        ]

    def list_due_snoozed_tasks(self, now: datetime) -> list[Task]:
        """Active tasks whose item is snoozed and whose wake time has passed."""
        rows = self._conn.execute(
            """
            SELECT t.* FROM tasks t
            JOIN items i ON i.id = t.item_id
            WHERE t.status = 'active' AND i.state = 'snoozed'
              AND t.snoozed_until IS NOT NULL
            ORDER BY t.snoozed_until ASC
            """
        ).fetchall()
        tasks = [_row_to_task(r) for r in rows]
        return [t for t in tasks if t.snoozed_until and t.snoozed_until <= as_utc(now)]

    # ---- Projects ----
    def insert_project(self, project: Project) -> Project:
        self._conn.execute(
            """
            INSERT INTO projects (id, item_id, outcome_statement, status,
                                  next_action_task_id, due_date, priority,
                                  focus_this_week, last_progress_at, theme_tag,
                                  waiting_on, waiting_since, follow_up_at,
                                  created_at, updated_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                project.id,
                project.item_id,
                project.outcome_statement,
                project.status,
                project.next_action_task_id,
                _iso(project.due_date),
                project.priority,
                int(project.focus_this_week),
                _iso(project.last_progress_at),
                project.theme_tag,
                project.waiting_on,
                _iso(project.waiting_since),
                _iso(project.follow_up_at),
                _iso(project.created_at),
                _iso(project.updated_at),
                project.version,
            ),
        )
        return project

    def get_project(self, project_id: str) -> Optional[Project]:
        row = self._conn.execute(
            "SELECT * FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        return _row_to_project(row) if row else None

    def find_project_by_next_action(self, task_id: str) -> Optional[Project]:
        row = self._conn.execute(
            "SELECT * FROM projects WHERE next_action_task_id = ? "
            "ORDER BY created_at ASC LIMIT 1",
            (task_id,),
        ).fetchone()
        return _row_to_project(row) if row else None

    def find_project_by_item(self, item_id: str) -> Optional[Project]:
        row = self._conn.execute(
            "SELECT * FROM projects WHERE item_id = ? ORDER BY created_at ASC LIMIT 1",
            (item_id,),
        ).fetchone()
        return _row_to_project(row) if row else None

    def update_project(self, project: Project) -> Project:
        """Persist a project under its optimistic version check."""
        now = utcnow()
        cursor = self._conn.execute(
            """
            UPDATE projects SET item_id=?, outcome_statement=?, status=?,
                                next_action_task_id=?, due_date=?, priority=?,
                                focus_this_week=?, last_progress_at=?, theme_tag=?,
                                waiting_on=?, waiting_since=?, follow_up_at=?,
                                updated_at=?, version=version + 1
            WHERE id = ? AND version = ?
            """,
            (
                project.item_id,
                project.outcome_statement,
                project.status,
                project.next_action_task_id,
                _iso(project.due_date),
                project.priority,
                int(project.focus_this_week),
                _iso(project.last_progress_at),
                project.theme_tag,
                project.waiting_on,
                _iso(project.waiting_since),
                _iso(project.follow_up_at),
                _iso(now),
                project.id,
                project.version,
            ),
        )
        if cursor.rowcount == 0:
            raise StaleStateError("Project", project.id, project.version)
        return project.model_copy(
            update={"updated_at": now, "version": project.version + 1}
        )

    def list_projects(
        self, statuses: Optional[list[ProjectStatus]] = None
    ) -> list[Project]:
        query = "SELECT * FROM projects"
        params: list = []
        if statuses:
            query += f" WHERE status IN ({', '.join('?' for _ in statuses)})"
            params.extend(statuses)
        query += " ORDER BY focus_this_week DESC, priority DESC, updated_at DESC"
        rows = self._conn.execute(query, params).fetchall()
        return [_row_to_project(r) for r in rows]

    # ---- Reminders ----
    def insert_reminder(self, reminder: Reminder) -> Reminder:
        self._conn.execute(
            "INSERT INTO reminders (id, item_id, due_at, kind, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                reminder.id,
                reminder.item_id,
                _iso(reminder.due_at),
                reminder.kind,
                _iso(reminder.created_at),
            ),
        )
        return reminder

    def find_reminder(self, item_id: str, kind: str) -> Optional[Reminder]:
        row = self._conn.execute(
            "SELECT * FROM reminders WHERE item_id = ? AND kind = ? "
            "ORDER BY created_at ASC LIMIT 1",
            (item_id, kind),
        ).fetchone()
        return _row_to_reminder(row) if row else None

    def update_reminder_due(self, reminder_id: str, due_at: datetime) -> None:
        self._conn.execute(
            "UPDATE reminders SET due_at = ? WHERE id = ?",
            (_iso(due_at), reminder_id),
        )

    def list_reminders(self, item_id: str) -> list[Reminder]:
        rows = self._conn.execute(
            "SELECT * FROM reminders WHERE item_id = ? ORDER BY due_at ASC",
            (item_id,),
        ).fetchall()
        return [_row_to_reminder(r) for r in rows]

    def list_waiting_with_follow_up_due(self, now: datetime) -> list[Item]:
        """Waiting items with at least one reminder due at or before now."""
        items = self.list_items(state="waiting")
        cutoff = as_utc(now)
        return [
            item
            for item in items
            if any(r.due_at <= cutoff for r in self.list_reminders(item.id))
        ]

    # ---- Artifacts ----
    def insert_artifact(self, artifact: Artifact) -> Artifact:
        self._conn.execute(
            "INSERT INTO artifacts (id, item_id, artifact_type, content, "
            "file_pointer, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (
                artifact.id,
                artifact.item_id,
                artifact.artifact_type,
                artifact.content,
                artifact.file_pointer,
                _iso(artifact.created_at),
            ),
        )
        return artifact

    def list_artifacts(self, item_id: str) -> list[Artifact]:
        """Artifacts for an item, newest first."""
        rows = self._conn.execute(
            "SELECT * FROM artifacts WHERE item_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (item_id,),
        ).fetchall()
        return [_row_to_artifact(r) for r in rows]

    # ---- Audit (append-only) ----
    def insert_audit(self, entry: TransitionAuditLog) -> TransitionAuditLog:
        seq_row = self._conn.execute(
            "SELECT COALESCE(MAX(seq), 0) + 1 FROM transition_audit_log"
        ).fetchone()
        self._conn.execute(
            """
            INSERT INTO transition_audit_log (id, seq, item_id, from_state,
                                              to_state_attempted, decision, actor,
                                              reasons, override, override_reason,
                                              created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                int(seq_row[0]),
                entry.item_id,
                entry.from_state,
                entry.to_state_attempted,
                entry.decision,
                entry.actor,
                json.dumps(entry.reasons) if entry.reasons is not None else None,
                int(entry.override),
                entry.override_reason,
                _iso(entry.created_at),
            ),
        )
        return entry

    def list_audit(
        self, item_id: Optional[str] = None, limit: int = 100
    ) -> list[TransitionAuditLog]:
        """Audit rows oldest first (optionally for one item)."""
        if item_id is not None:
            rows = self._conn.execute(
                "SELECT * FROM transition_audit_log WHERE item_id = ? "
                "ORDER BY seq ASC LIMIT ?",
                (item_id, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM transition_audit_log ORDER BY seq ASC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_audit(r) for r in rows]


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        id=row["id"],
        title=row["title"],
        body=row["body"] or "",
        type=row["type"],
        state=row["state"],
        source=row["source"],
        waiting_on=row["waiting_on"],
        waiting_since=_parse_dt(row["waiting_since"]),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
        version=row["version"],
    )


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        item_id=row["item_id"],
        project_id=row["project_id"],
        action_text=row["action_text"],
        context=row["context"],
        energy=row["energy"],
        estimated_minutes=row["estimated_minutes"],
        due_date=_parse_dt(row["due_date"]),
        snoozed_until=_parse_dt(row["snoozed_until"]),
        pinned_order=row["pinned_order"],
        manual_rank=row["manual_rank"],
        priority=row["priority"],
        status=row["status"],
        unverified=bool(row["unverified"]),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        item_id=row["item_id"],
        outcome_statement=row["outcome_statement"],
        status=row["status"],
        next_action_task_id=row["next_action_task_id"],
        due_date=_parse_dt(row["due_date"]),
        priority=row["priority"],
        focus_this_week=bool(row["focus_this_week"]),
        last_progress_at=_parse_dt(row["last_progress_at"]),
        theme_tag=row["theme_tag"],
        waiting_on=row["waiting_on"],
        waiting_since=_parse_dt(row["waiting_since"]),
        follow_up_at=_parse_dt(row["follow_up_at"]),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
        version=row["version"],
    )


def _row_to_reminder(row: sqlite3.Row) -> Reminder:
    return Reminder(
        id=row["id"],
        item_id=row["item_id"],
        due_at=_parse_dt(row["due_at"]),
        kind=row["kind"],
        created_at=_parse_dt(row["created_at"]),
    )


def _row_to_artifact(row: sqlite3.Row) -> Artifact:
    return Artifact(
        id=row["id"],
        item_id=row["item_id"],
        artifact_type=row["artifact_type"],
        content=row["content"],
        file_pointer=row["file_pointer"],
        created_at=_parse_dt(row["created_at"]),
    )


def _row_to_audit(row: sqlite3.Row) -> TransitionAuditLog:
    """Convert an audit row, tolerating malformed reasons JSON."""
    reasons = None
    if row["reasons"]:
        try:
            reasons = json.loads(row["reasons"])
        except json.JSONDecodeError:
            reasons = {"raw": row["reasons"]}
    return TransitionAuditLog(
        id=row["id"],
        item_id=row["item_id"],
        from_state=row["from_state"],
        to_state_attempted=row["to_state_attempted"],
        decision=row["decision"],
        actor=row["actor"],
        reasons=reasons,
        override=bool(row["override"]),
        override_reason=row["override_reason"],
        created_at=_parse_dt(row["created_at"]),
    )
