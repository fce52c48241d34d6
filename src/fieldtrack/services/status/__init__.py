"""Status resolution services."""

from .late_visits import find_late_visits
from .resolver import StatusResolver, resolve_status
from .sweeper import StatusSweeper

__all__ = ["StatusResolver", "StatusSweeper", "resolve_status", "find_late_visits"]
