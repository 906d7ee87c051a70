"""
Tasks Module - recurring task regeneration.
"""

from cadence.tasks.recurrence import (
    RecurrenceEngine,
    RecurrenceRule,
    RecurrenceType,
    RecurringTaskInstance,
    Subtask,
    TaskStatus,
)

__all__ = [
    "RecurrenceEngine",
    "RecurrenceRule",
    "RecurrenceType",
    "RecurringTaskInstance",
    "Subtask",
    "TaskStatus",
]
