"""
Scheduling error taxonomy.

Every error here is a precondition violation on an otherwise pure
computation: the same bad input always produces the same error. None of
them are transient, so nothing in the core retries.
"""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for rejected scheduling actions."""

    pass


class InvalidQuality(SchedulingError):
    """Raised when a recall quality is not one of again/hard/good/easy."""

    pass


class InvalidPolicy(SchedulingError):
    """Raised when a policy or cycle configuration has inconsistent bounds."""

    pass


class NoRecurrenceConfigured(SchedulingError):
    """Raised when a task without a recurrence rule or due date is recurred."""

    pass


class RecurrenceEnded(SchedulingError):
    """Raised when the next occurrence would fall after the rule's end date."""

    def __init__(self, message: str, next_due_at=None, end_at=None):
        super().__init__(message)
        self.next_due_at = next_due_at
        self.end_at = end_at


class InvalidTransition(SchedulingError):
    """Raised when a focus session receives an event its state does not accept."""

    def __init__(self, message: str, state=None, event: str | None = None):
        super().__init__(message)
        self.state = state
        self.event = event


class EntityNotFound(SchedulingError):
    """Raised by the persistence collaborator when a load misses."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id
