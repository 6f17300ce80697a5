"""Application logic layer.

The Engine lives in flowgate.core.engine; it is not re-exported here because
the database layer imports flowgate.core.errors.
"""

from .errors import FlowGateError, NotFoundError, StaleStateError
from .rules import Disposition, is_plausible_next_action

__all__ = [
    "Disposition",
    "FlowGateError",
    "NotFoundError",
    "StaleStateError",
    "is_plausible_next_action",
]
