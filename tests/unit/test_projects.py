"""Unit tests for ProjectService: creation, Gate A/B edits, completion, review lists."""

from datetime import timedelta

import pytest

from fakes import FakeVerifier, fail
from flowgate.core.errors import NotFoundError
from flowgate.core.services import ItemService, ProjectService, TransitionService
from flowgate.core.services.projects import project_status_to_item_state
from flowgate.database.sqlite import SqliteDB
from flowgate.models import Item, Project, ProjectPatch, Task, TransitionPayload
from flowgate.utils.dates import utcnow

OUTCOME = "Budget approved by finance"
ACTION = "Email Dana the budget draft"


def _active(projects: ProjectService) -> Project:
    result = projects.create_project(OUTCOME, ACTION, status="active")
    assert result.success
    return result.project


@pytest.mark.parametrize(
    "status,state",
    [
        ("clarifying", "project"),
        ("active", "project"),
        ("on_hold", "project"),
        ("waiting", "waiting"),
        ("someday", "someday"),
        ("done", "done"),
        ("archived", "archived"),
    ],
)
def test_project_status_to_item_state(status: str, state: str) -> None:
    assert project_status_to_item_state(status) == state


def test_create_clarifying_needs_nothing(projects: ProjectService) -> None:
    result = projects.create_project()
    assert result.success
    assert result.project.status == "clarifying"
    assert result.task is None


def test_create_active_checks_outcome_and_action(projects: ProjectService) -> None:
    short = projects.create_project("Budget", ACTION, status="active")
    assert not short.success
    assert "at least 10" in short.reason

    missing = projects.create_project(OUTCOME, None, status="active")
    assert missing.reason == "Next action is required for active."

    vague = projects.create_project(OUTCOME, "figure out budget", status="active")
    assert vague.reason == 'Vague placeholder: "figure out"'


def test_create_active_makes_next_action_task(projects: ProjectService, db: SqliteDB) -> None:
    project = _active(projects)

    with db.session() as s:
        task = s.get_task(project.next_action_task_id)
        stored = s.get_project(project.id)
    assert task.action_text == ACTION
    assert task.project_id == project.id
    assert task.item_id is None
    assert stored.status == "active"


def test_create_for_unknown_item(projects: ProjectService) -> None:
    with pytest.raises(NotFoundError):
        projects.create_project(OUTCOME, item_id="missing")


def test_create_for_item_syncs_item_state(
    projects: ProjectService, inbox_item: Item, db: SqliteDB
) -> None:
    projects.create_project(OUTCOME, item_id=inbox_item.id)

    with db.session() as s:
        item = s.get_item(inbox_item.id)
        (row,) = s.list_audit(inbox_item.id)
    assert item.state == "project"
    assert item.type == "project"
    assert row.decision == "approved"
    assert row.reasons == {"reason": "project_status_sync", "projectStatus": "clarifying"}


def test_patch_into_active_runs_gate_a(projects: ProjectService) -> None:
    project = projects.create_project(OUTCOME).project

    refused = projects.patch_project(project.id, ProjectPatch(status="active"))
    assert not refused.success
    assert refused.reason == "Next action is required for active."

    ok = projects.patch_project(
        project.id, ProjectPatch(status="active", next_action_text=ACTION)
    )
    assert ok.success
    assert ok.project.status == "active"
    assert ok.project.next_action_task_id == ok.task.id


def test_patch_rejects_illegal_status(projects: ProjectService) -> None:
    project = projects.create_project(OUTCOME).project
    result = projects.patch_project(project.id, ProjectPatch(status="done"))
    assert not result.success
    assert result.reason == "Transition from clarifying to done is not allowed."


def test_patch_rejects_vague_next_action_without_writing(
    projects: ProjectService, db: SqliteDB
) -> None:
    project = _active(projects)
    result = projects.patch_project(project.id, ProjectPatch(next_action_text="stuff"))

    assert not result.success
    with db.session() as s:
        assert s.count_tasks_for_project(project.id) == 1
        assert s.get_project(project.id).version == project.version


def test_gate_b_downgrades_to_clarifying(projects: ProjectService) -> None:
    project = _active(projects)

    result = projects.patch_project(project.id, ProjectPatch(outcome_statement="Done"))

    assert result.success
    assert result.project.status == "clarifying"
    assert result.project.next_action_task_id is None
    assert result.project.outcome_statement == "Done"


def test_gate_b_downgrades_to_waiting(
    projects: ProjectService,
    transitions: TransitionService,
    inbox_item: Item,
) -> None:
    task = transitions.execute_transition(
        inbox_item.id, "actionable", TransitionPayload(action_text=ACTION)
    ).task
    transitions.execute_transition(inbox_item.id, "waiting", TransitionPayload(waiting_on="CFO"))
    project = _active(projects)

    result = projects.patch_project(project.id, ProjectPatch(next_action_task_id=task.id))

    assert result.project.status == "waiting"
    assert result.project.next_action_task_id == task.id


def test_patch_into_active_refuses_completed_next_action(
    projects: ProjectService, db: SqliteDB
) -> None:
    project = projects.create_project(OUTCOME).project
    with db.session(write=True) as s:
        s.insert_task(
            Task(id="finished", action_text=ACTION, project_id=project.id, status="completed")
        )

    result = projects.patch_project(
        project.id, ProjectPatch(status="active", next_action_task_id="finished")
    )

    assert not result.success
    assert result.reason == "Next action task is already completed."
    assert projects.get_project(project.id).status == "clarifying"


def test_next_action_waiting_moves_project_item(
    projects: ProjectService,
    items: ItemService,
    transitions: TransitionService,
    inbox_item: Item,
    db: SqliteDB,
) -> None:
    project_item = items.capture("Budget sign-off")
    project = projects.create_project(
        OUTCOME, ACTION, status="active", item_id=project_item.id
    ).project
    task = transitions.execute_transition(
        inbox_item.id, "actionable", TransitionPayload(action_text=ACTION)
    ).task
    projects.patch_project(project.id, ProjectPatch(next_action_task_id=task.id))

    transitions.execute_transition(inbox_item.id, "waiting", TransitionPayload(waiting_on="CFO"))

    assert projects.get_project(project.id).status == "waiting"
    with db.session() as s:
        assert s.get_item(project_item.id).state == "waiting"
        last = s.list_audit(project_item.id)[-1]
    assert last.to_state_attempted == "waiting"
    assert last.actor == "system"
    assert last.reasons == {"reason": "project_status_sync", "projectStatus": "waiting"}

    transitions.execute_transition(inbox_item.id, "clarifying")

    assert projects.get_project(project.id).status == "clarifying"
    with db.session() as s:
        assert s.get_item(project_item.id).state == "project"


def test_patch_omitted_fields_untouched_and_none_clears(projects: ProjectService) -> None:
    project = projects.create_project(OUTCOME, theme_tag="finance", priority=4).project

    renamed = projects.patch_project(project.id, ProjectPatch(priority=7)).project
    assert renamed.theme_tag == "finance"
    assert renamed.priority == 7

    cleared = projects.patch_project(project.id, ProjectPatch(theme_tag=None)).project
    assert cleared.theme_tag is None
    assert cleared.priority == 7


def test_patch_unknown_project(projects: ProjectService) -> None:
    with pytest.raises(NotFoundError):
        projects.patch_project("missing", ProjectPatch(priority=1))


def test_activate_runs_verifier(projects: ProjectService, verifier: FakeVerifier) -> None:
    project = projects.create_project(OUTCOME).project
    projects.patch_project(project.id, ProjectPatch(next_action_text=ACTION))

    verifier.outcome = fail("UNTESTABLE", "How will you know?")
    refused = projects.activate_project(project.id)
    assert not refused.success
    assert refused.verifier_failures[0].code == "UNTESTABLE"

    verifier.outcome = None
    ok = projects.activate_project(project.id)
    assert ok.success
    assert ok.project.status == "active"
    assert verifier.calls == ["outcome", "outcome", "project_next_action"]


def test_activate_without_verifier(projects: ProjectService, verifier: FakeVerifier) -> None:
    project = projects.create_project(OUTCOME).project
    projects.patch_project(project.id, ProjectPatch(next_action_text=ACTION))

    assert projects.activate_project(project.id, run_verifier=False).success
    assert verifier.calls == []


def test_complete_project_policies(projects: ProjectService, db: SqliteDB) -> None:
    project = _active(projects)

    unconfirmed = projects.complete_project(project.id, confirm_outcome=False)
    assert not unconfirmed.success

    strict = projects.complete_project(project.id, True, remaining_task_policy="strict")
    assert not strict.success
    assert [t.id for t in strict.remaining_tasks] == [project.next_action_task_id]

    flexible = projects.complete_project(project.id, True)
    assert flexible.success
    assert flexible.project.status == "done"
    assert len(flexible.remaining_tasks) == 1


def test_complete_requires_live_project(projects: ProjectService) -> None:
    project = projects.create_project(OUTCOME).project
    result = projects.complete_project(project.id, True)
    assert result.reason == "Cannot mark project done from clarifying."


def test_completing_project_marks_item_done(
    projects: ProjectService, items: ItemService, inbox_item: Item, db: SqliteDB
) -> None:
    project = projects.create_project(OUTCOME, ACTION, status="active", item_id=inbox_item.id).project
    projects.complete_project(project.id, True)

    with db.session() as s:
        assert s.get_item(inbox_item.id).state == "done"
        rows = s.list_audit(inbox_item.id)
    assert [r.to_state_attempted for r in rows] == ["project", "done"]


def test_review_lists(projects: ProjectService, db: SqliteDB) -> None:
    now = utcnow()
    with db.session(write=True) as s:
        s.insert_project(
            Project(
                id="old",
                status="active",
                next_action_task_id="t1",
                last_progress_at=now - timedelta(days=20),
            )
        )
        s.insert_project(Project(id="fresh", status="active", last_progress_at=now))
        s.insert_project(
            Project(id="shelved", status="someday", last_progress_at=now - timedelta(days=90))
        )

    assert [p.id for p in projects.list_stalled_projects(days=14)] == ["old"]
    assert [p.id for p in projects.list_projects_without_next_action()] == ["fresh"]


def test_assign_item_syncs_state(
    projects: ProjectService, inbox_item: Item, db: SqliteDB
) -> None:
    project = _active(projects)

    result = projects.assign_item(project.id, inbox_item.id)

    assert result.success
    assert result.project.item_id == inbox_item.id
    assert result.project.next_action_task_id == project.next_action_task_id
    with db.session() as s:
        item = s.get_item(inbox_item.id)
        (row,) = s.list_audit(inbox_item.id)
    assert (item.type, item.state) == ("project", "project")
    assert row.reasons == {"reason": "project_status_sync", "projectStatus": "active"}


def test_assign_item_refusals(
    projects: ProjectService, items: ItemService, inbox_item: Item
) -> None:
    owner = projects.create_project(OUTCOME, item_id=inbox_item.id).project
    other = projects.create_project().project

    taken = projects.assign_item(other.id, inbox_item.id)
    assert not taken.success
    assert taken.reason == f"Item is already assigned to project {owner.id}."

    full = projects.assign_item(owner.id, items.capture("Spare").id)
    assert full.reason == "Project already has an item assigned."

    with pytest.raises(NotFoundError):
        projects.assign_item(other.id, "missing")
    with pytest.raises(NotFoundError):
        projects.assign_item("missing", inbox_item.id)
