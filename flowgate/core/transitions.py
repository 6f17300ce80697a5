"""Legal state edges for items and projects.

Terminal states have no out-edges and no state has a self edge, so
re-requesting the state an item is already in is always rejected.
"""

from flowgate.models import ItemState, ProjectStatus

ITEM_TRANSITIONS: dict[ItemState, frozenset[ItemState]] = {
    "inbox": frozenset(
        {"clarifying", "actionable", "project", "reference", "someday", "archived", "waiting"}
    ),
    "clarifying": frozenset(
        {"actionable", "waiting", "project", "reference", "someday", "archived"}
    ),
    "actionable": frozenset({"done", "waiting", "snoozed", "clarifying"}),
    "waiting": frozenset({"actionable", "snoozed", "done", "clarifying"}),
    "snoozed": frozenset({"actionable", "waiting", "done", "clarifying"}),
    "done": frozenset({"archived"}),
    "archived": frozenset(),
    # Project items move with their Project's status, not through this table.
    "project": frozenset(),
    "someday": frozenset({"actionable", "clarifying", "reference", "archived"}),
    "reference": frozenset({"archived"}),
}

PROJECT_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    "clarifying": frozenset({"active", "on_hold", "archived"}),
    "active": frozenset({"waiting", "on_hold", "done", "clarifying"}),
    "waiting": frozenset({"active", "on_hold", "done", "clarifying"}),
    "on_hold": frozenset({"active", "clarifying", "archived"}),
    "someday": frozenset({"active", "clarifying", "archived"}),
    "done": frozenset({"archived"}),
    "archived": frozenset(),
}


def is_allowed(from_state: ItemState, to_state: ItemState) -> bool:
    return to_state in ITEM_TRANSITIONS.get(from_state, frozenset())


def allowed_targets(from_state: ItemState) -> list[ItemState]:
    return sorted(ITEM_TRANSITIONS.get(from_state, frozenset()))


def is_project_transition_allowed(
    from_status: ProjectStatus, to_status: ProjectStatus
) -> bool:
    return to_status in PROJECT_TRANSITIONS.get(from_status, frozenset())


def allowed_project_targets(from_status: ProjectStatus) -> list[ProjectStatus]:
    return sorted(PROJECT_TRANSITIONS.get(from_status, frozenset()))
