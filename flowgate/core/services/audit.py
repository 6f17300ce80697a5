"""Audit row construction shared by the services that change item state."""

from typing import Any, Optional

from flowgate.database.sqlite import new_id
from flowgate.models import Item, ItemState, TransitionAuditLog
from flowgate.models.item import AuditDecision


def audit_entry(
    item: Item,
    target: ItemState,
    decision: AuditDecision,
    actor: str,
    reasons: Optional[dict[str, Any]] = None,
    override: bool = False,
    override_reason: Optional[str] = None,
) -> TransitionAuditLog:
    """Build an audit row; from_state is the item's state before the attempt."""
    return TransitionAuditLog(
        id=new_id(),
        item_id=item.id,
        from_state=item.state,
        to_state_attempted=target,
        decision=decision,
        actor=actor,
        reasons=reasons,
        override=override,
        override_reason=override_reason if override else None,
    )
