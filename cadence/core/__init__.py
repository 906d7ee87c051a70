"""
Core Module - Shared value-object utilities.

Components:
- errors: Scheduling error taxonomy (InvalidQuality, InvalidPolicy, ...)
- clock: Injectable clock and identity seams
- calendar: Date-only arithmetic used by every engine

Design Principle:
The engines in cadence.study and cadence.tasks import from cadence.core
and never from each other.
"""

from cadence.core.calendar import add_days, add_months, add_weeks, round_half_up
from cadence.core.clock import Clock, FrozenClock, SystemClock, derived_id, new_id
from cadence.core.errors import (
    EntityNotFound,
    InvalidPolicy,
    InvalidQuality,
    InvalidTransition,
    NoRecurrenceConfigured,
    RecurrenceEnded,
    SchedulingError,
)

__all__ = [
    # Calendar
    "add_days",
    "add_weeks",
    "add_months",
    "round_half_up",
    # Clock
    "Clock",
    "SystemClock",
    "FrozenClock",
    "new_id",
    "derived_id",
    # Errors
    "SchedulingError",
    "InvalidQuality",
    "InvalidPolicy",
    "NoRecurrenceConfigured",
    "RecurrenceEnded",
    "InvalidTransition",
    "EntityNotFound",
]
