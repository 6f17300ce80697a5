"""Exception types raised by the core layer.

Gate rejections are not exceptions; they come back as TransitionResult values
and are audited. These cover caller mistakes and storage conflicts.
"""


class FlowGateError(Exception):
    """Base class for flowgate errors."""


class NotFoundError(FlowGateError, LookupError):
    """A referenced item, task or project does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} '{entity_id}' not found")
        self.kind = kind
        self.entity_id = entity_id


class StaleStateError(FlowGateError):
    """The row changed between load and write (optimistic lock lost)."""

    def __init__(self, kind: str, entity_id: str, expected_version: int) -> None:
        super().__init__(
            f"{kind} '{entity_id}' was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.kind = kind
        self.entity_id = entity_id
        self.expected_version = expected_version
