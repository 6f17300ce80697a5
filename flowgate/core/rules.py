"""Deterministic next-action rules and the inbox disposition mapping.

Both are pure: no I/O, no verifier. The rule check is the fast-fail path that
always runs before any external call.
"""

import re
from enum import Enum
from typing import NamedTuple, Optional

from flowgate.models import ItemState, ItemType

MIN_ACTION_LENGTH = 5

VAGUE_PLACEHOLDERS = (
    "tbd",
    "figure out",
    "work on",
    "handle",
    "look into",
    "fix",
    "review",
    "check",
    "something",
    "stuff",
    "things",
)

ACTION_VERBS = (
    "call",
    "email",
    "draft",
    "write",
    "send",
    "buy",
    "schedule",
    "book",
    "download",
    "fill",
    "submit",
    "compare",
    "ask",
    "reply",
    "create",
    "update",
    "delete",
    "add",
    "remove",
    "find",
    "get",
    "pick",
    "choose",
    "confirm",
    "cancel",
    "pay",
    "file",
    "sign",
    "upload",
    "copy",
    "paste",
    "move",
    "organize",
    "list",
    "research",
    "read",
    "watch",
    "test",
    "install",
    "set up",
    "configure",
)

_NON_LETTERS = re.compile(r"[^a-z]")


class RuleResult(NamedTuple):
    valid: bool
    reason: Optional[str] = None


def is_plausible_next_action(action_text: str) -> RuleResult:
    """Check that text reads like a concrete, verb-first physical action.

    Example:
        >>> is_plausible_next_action("Email CPA asking what docs are needed")
        RuleResult(valid=True, reason=None)
        >>> is_plausible_next_action("figure out taxes").reason
        'Vague placeholder: "figure out"'
    """
    text = (action_text or "").strip()
    if len(text) < MIN_ACTION_LENGTH:
        return RuleResult(False, "Too short to be a concrete action")

    lower = text.lower()
    for placeholder in VAGUE_PLACEHOLDERS:
        if placeholder in lower:
            return RuleResult(False, f'Vague placeholder: "{placeholder}"')

    first_word = _NON_LETTERS.sub("", lower.split()[0])
    if not any(first_word == v or first_word.startswith(v) for v in ACTION_VERBS):
        return RuleResult(
            False, "Next action should start with a verb (e.g. call, email, draft)"
        )
    return RuleResult(True)


class Disposition(str, Enum):
    """The user's classification choice for an inbox item."""

    NEXT_ACTION = "next_action"
    PROJECT = "project"
    WAITING = "waiting"
    SOMEDAY = "someday"
    REFERENCE = "reference"
    TRASH = "trash"


def disposition_target(disposition: Disposition) -> tuple[ItemType, ItemState]:
    """Map a disposition to the (type, state) pair the item should end in."""
    match Disposition(disposition):
        case Disposition.NEXT_ACTION:
            return "task", "actionable"
        case Disposition.PROJECT:
            return "project", "project"
        case Disposition.WAITING:
            return "waiting", "waiting"
        case Disposition.SOMEDAY:
            return "someday", "someday"
        case Disposition.REFERENCE:
            return "reference", "reference"
        case Disposition.TRASH:
            return "trash", "archived"
