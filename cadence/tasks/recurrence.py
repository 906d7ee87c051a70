"""
Recurring task regeneration.

When a recurring task is completed, the next occurrence is derived from
the completed instance and its recurrence rule:

- daily:   due date + interval days
- weekly:  due date + interval weeks
- monthly: due date + interval calendar months (day-of-month clamped)

The successor is a fresh task: new identity, open status, subtasks reset.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable

from loguru import logger

from cadence.core.calendar import add_days, add_months, add_weeks
from cadence.core.clock import derived_id
from cadence.core.errors import InvalidPolicy, NoRecurrenceConfigured, RecurrenceEnded


class RecurrenceType(str, Enum):
    """Repeat cadence of a task."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TaskStatus(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"


@dataclass(frozen=True)
class RecurrenceRule:
    """Repeat every `interval` units of `type`, optionally until `end_at`."""

    type: RecurrenceType
    interval: int = 1
    end_at: datetime | None = None

    def __post_init__(self):
        if not isinstance(self.type, RecurrenceType):
            try:
                object.__setattr__(self, "type", RecurrenceType(self.type))
            except ValueError:
                raise InvalidPolicy(f"Unknown recurrence type {self.type!r}") from None
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 1:
            raise InvalidPolicy(f"Recurrence interval must be a positive integer, got {self.interval!r}")

    def describe(self) -> str:
        unit = {
            RecurrenceType.DAILY: "day",
            RecurrenceType.WEEKLY: "week",
            RecurrenceType.MONTHLY: "month",
        }[self.type]
        text = f"every {self.interval} {unit}{'s' if self.interval != 1 else ''}"
        if self.end_at is not None:
            text += f" until {self.end_at.date().isoformat()}"
        return text


@dataclass(frozen=True)
class Subtask:
    subtask_id: str
    title: str
    completed: bool = False


@dataclass(frozen=True)
class RecurringTaskInstance:
    """One concrete occurrence of a (possibly) repeating task."""

    task_id: str
    title: str
    due_at: datetime | None = None
    recurrence_rule: RecurrenceRule | None = None
    subtasks: tuple[Subtask, ...] = field(default_factory=tuple)
    status: TaskStatus = TaskStatus.OPEN
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None

    def _due_date(self, now: datetime):
        # Calendar date of the due moment in the zone of `now`
        return self.due_at.astimezone(now.tzinfo).date()

    def is_overdue(self, now: datetime) -> bool:
        """Open and due on a calendar day before today."""
        if self.due_at is None or self.status is TaskStatus.COMPLETED:
            return False
        return self._due_date(now) < now.date()

    def is_due_today(self, now: datetime) -> bool:
        """Due on today's calendar date, whatever the time of day."""
        if self.due_at is None:
            return False
        return self._due_date(now) == now.date()


IdFactory = Callable[..., str]


class RecurrenceEngine:
    """
    Derives the next occurrence of a recurring task.

    Identity comes from `id_factory`. The default derives ids from the
    parent task id and the new due date, so repeated calls with the same
    inputs produce identical successors.
    """

    def __init__(self, id_factory: IdFactory = derived_id):
        self.id_factory = id_factory

    def next_due_at(self, due_at: datetime, rule: RecurrenceRule) -> datetime:
        """Compute the due date one rule step after `due_at`."""
        if rule.type is RecurrenceType.DAILY:
            return add_days(due_at, rule.interval)
        if rule.type is RecurrenceType.WEEKLY:
            return add_weeks(due_at, rule.interval)
        return add_months(due_at, rule.interval)

    def next_occurrence(
        self,
        instance: RecurringTaskInstance,
        now: datetime,
    ) -> RecurringTaskInstance:
        """
        Build the successor of a recurring task instance.

        Args:
            instance: The occurrence being completed
            now: Creation time stamped on the successor

        Returns:
            New open RecurringTaskInstance

        Raises:
            NoRecurrenceConfigured: instance has no rule or no due date
            RecurrenceEnded: the next due date falls after the rule's end_at
        """
        rule = instance.recurrence_rule
        if rule is None or instance.due_at is None:
            raise NoRecurrenceConfigured(
                f"Task {instance.task_id} has no recurrence configured"
            )

        next_due = self.next_due_at(instance.due_at, rule)

        if rule.end_at is not None and next_due > rule.end_at:
            raise RecurrenceEnded(
                f"Recurrence of task {instance.task_id} ended: next occurrence "
                f"{next_due.isoformat()} is after {rule.end_at.isoformat()}",
                next_due_at=next_due,
                end_at=rule.end_at,
            )

        successor_id = self.id_factory(instance.task_id, next_due.isoformat())
        subtasks = tuple(
            Subtask(
                subtask_id=self.id_factory(successor_id, str(index)),
                title=subtask.title,
                completed=False,
            )
            for index, subtask in enumerate(instance.subtasks)
        )

        successor = RecurringTaskInstance(
            task_id=successor_id,
            title=instance.title,
            due_at=next_due,
            recurrence_rule=rule,
            subtasks=subtasks,
            status=TaskStatus.OPEN,
            created_at=now,
            completed_at=None,
        )

        logger.debug(
            f"Task {instance.task_id} recurs as {successor_id} due {next_due.isoformat()} "
            f"({rule.describe()})"
        )
        return successor

    @staticmethod
    def complete(instance: RecurringTaskInstance, now: datetime) -> RecurringTaskInstance:
        """Mark an instance completed (idempotent for already completed ones)."""
        if instance.status is TaskStatus.COMPLETED:
            return instance
        return replace(instance, status=TaskStatus.COMPLETED, completed_at=now)
