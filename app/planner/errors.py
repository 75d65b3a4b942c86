"""Domain exceptions raised inside the planner."""

from __future__ import annotations


class PlannerError(RuntimeError):
    """Base class for planner failures the service knows how to report."""


class DraftConflictError(PlannerError):
    """Raised when a concurrent write to the owner's draft won the race."""


class EventNotFoundError(PlannerError):
    """Raised when a pending event update points at a missing event."""
