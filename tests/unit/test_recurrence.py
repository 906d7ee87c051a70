"""
Unit tests for recurring task regeneration.

Run: pytest tests/unit/test_recurrence.py -v
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from dateutil import tz

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from cadence.core.errors import InvalidPolicy, NoRecurrenceConfigured, RecurrenceEnded
from cadence.tasks.recurrence import (
    RecurrenceEngine,
    RecurrenceRule,
    RecurrenceType,
    RecurringTaskInstance,
    Subtask,
    TaskStatus,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    return RecurrenceEngine()


def make_task(due_at, rule, **overrides):
    fields = {
        "task_id": "task-1",
        "title": "Water the plants",
        "due_at": due_at,
        "recurrence_rule": rule,
        "created_at": utc(2023, 12, 1),
    }
    fields.update(overrides)
    return RecurringTaskInstance(**fields)


class TestRecurrenceRule:
    """Rule construction and validation."""

    def test_type_coerced_from_string(self):
        """Recurrence types may be given by value."""
        assert RecurrenceRule("weekly").type is RecurrenceType.WEEKLY

    @pytest.mark.parametrize("interval", [0, -2, 1.5, True])
    def test_interval_must_be_positive_int(self, interval):
        """Intervals below one or not integral are rejected."""
        with pytest.raises(InvalidPolicy):
            RecurrenceRule(RecurrenceType.DAILY, interval)

    def test_unknown_type_rejected(self):
        """Only daily, weekly and monthly are supported."""
        with pytest.raises(InvalidPolicy):
            RecurrenceRule("yearly")

    def test_describe(self):
        """Human-readable summary used by the CLI."""
        rule = RecurrenceRule(RecurrenceType.WEEKLY, 2, utc(2024, 1, 10))
        assert rule.describe() == "every 2 weeks until 2024-01-10"
        assert RecurrenceRule(RecurrenceType.DAILY).describe() == "every 1 day"


class TestNextDueAt:
    """Calendar stepping per recurrence type."""

    def test_daily(self, engine):
        """Daily adds interval days."""
        rule = RecurrenceRule(RecurrenceType.DAILY, 3)
        assert engine.next_due_at(utc(2024, 2, 27, 8), rule) == utc(2024, 3, 1, 8)

    def test_weekly(self, engine):
        """Weekly adds interval weeks."""
        rule = RecurrenceRule(RecurrenceType.WEEKLY, 2)
        assert engine.next_due_at(utc(2024, 1, 1), rule) == utc(2024, 1, 15)

    def test_monthly_clamps_to_leap_day(self, engine):
        """Jan 31 + 1 month is Feb 29 in a leap year."""
        rule = RecurrenceRule(RecurrenceType.MONTHLY)
        assert engine.next_due_at(utc(2024, 1, 31, 9), rule) == utc(2024, 2, 29, 9)

    def test_monthly_clamps_to_month_end(self, engine):
        """Jan 31 + 1 month is Feb 28 in a common year."""
        rule = RecurrenceRule(RecurrenceType.MONTHLY)
        assert engine.next_due_at(utc(2023, 1, 31, 9), rule) == utc(2023, 2, 28, 9)

    def test_monthly_interval(self, engine):
        """Monthly with interval 3 lands on the same day three months later."""
        rule = RecurrenceRule(RecurrenceType.MONTHLY, 3)
        assert engine.next_due_at(utc(2024, 11, 15), rule) == utc(2025, 2, 15)

    def test_daily_keeps_local_time_across_dst(self, engine):
        """Calendar days keep the wall-clock time when the offset changes."""
        berlin = tz.gettz("Europe/Berlin")
        due = datetime(2024, 3, 30, 7, 30, tzinfo=berlin)
        next_due = engine.next_due_at(due, RecurrenceRule(RecurrenceType.DAILY))

        assert (next_due.day, next_due.hour, next_due.minute) == (31, 7, 30)
        assert next_due.utcoffset() != due.utcoffset()


class TestNextOccurrence:
    """Successor construction."""

    def test_successor_fields(self, engine, utc_noon):
        """The successor is a fresh open task due one step later."""
        rule = RecurrenceRule(RecurrenceType.WEEKLY)
        task = make_task(
            utc(2024, 1, 8, 9),
            rule,
            status=TaskStatus.COMPLETED,
            completed_at=utc(2024, 1, 8, 10),
        )
        successor = engine.next_occurrence(task, utc_noon)

        assert successor.task_id != task.task_id
        assert successor.title == task.title
        assert successor.due_at == utc(2024, 1, 15, 9)
        assert successor.recurrence_rule == rule
        assert successor.status is TaskStatus.OPEN
        assert successor.created_at == utc_noon
        assert successor.completed_at is None

    def test_subtasks_reset(self, engine, utc_noon):
        """Subtasks carry over by title, uncompleted, with new ids."""
        task = make_task(
            utc(2024, 1, 8),
            RecurrenceRule(RecurrenceType.DAILY),
            subtasks=(
                Subtask("s1", "Front garden", completed=True),
                Subtask("s2", "Balcony", completed=False),
            ),
        )
        successor = engine.next_occurrence(task, utc_noon)

        assert [s.title for s in successor.subtasks] == ["Front garden", "Balcony"]
        assert not any(s.completed for s in successor.subtasks)
        assert {s.subtask_id for s in successor.subtasks}.isdisjoint({"s1", "s2"})

    def test_idempotent(self, engine, utc_noon):
        """The same completion always yields the same successor."""
        task = make_task(
            utc(2024, 1, 8),
            RecurrenceRule(RecurrenceType.DAILY),
            subtasks=(Subtask("s1", "Front garden"),),
        )
        assert engine.next_occurrence(task, utc_noon) == engine.next_occurrence(task, utc_noon)

    def test_custom_id_factory(self, utc_noon):
        """Identity comes from the injected factory."""
        engine = RecurrenceEngine(id_factory=lambda *parts: "-".join(parts))
        task = make_task(utc(2024, 1, 8), RecurrenceRule(RecurrenceType.DAILY))

        successor = engine.next_occurrence(task, utc_noon)
        assert successor.task_id == f"task-1-{utc(2024, 1, 9).isoformat()}"

    def test_end_date_reached(self, engine, utc_noon):
        """A successor past end_at raises RecurrenceEnded."""
        rule = RecurrenceRule(RecurrenceType.WEEKLY, 2, end_at=utc(2024, 1, 10))
        task = make_task(utc(2024, 1, 1), rule)

        with pytest.raises(RecurrenceEnded) as exc_info:
            engine.next_occurrence(task, utc_noon)
        assert exc_info.value.next_due_at == utc(2024, 1, 15)
        assert exc_info.value.end_at == utc(2024, 1, 10)

    def test_end_date_inclusive(self, engine, utc_noon):
        """A successor due exactly at end_at is still created."""
        rule = RecurrenceRule(RecurrenceType.WEEKLY, 2, end_at=utc(2024, 1, 15))
        successor = engine.next_occurrence(make_task(utc(2024, 1, 1), rule), utc_noon)
        assert successor.due_at == utc(2024, 1, 15)

    def test_no_rule(self, engine, utc_noon):
        """A one-off task cannot recur."""
        with pytest.raises(NoRecurrenceConfigured):
            engine.next_occurrence(make_task(utc(2024, 1, 1), None), utc_noon)

    def test_no_due_date(self, engine, utc_noon):
        """A rule without a due date has nothing to step from."""
        with pytest.raises(NoRecurrenceConfigured):
            engine.next_occurrence(
                make_task(None, RecurrenceRule(RecurrenceType.DAILY)),
                utc_noon,
            )


class TestComplete:
    """Marking instances completed."""

    def test_complete(self, engine, utc_noon):
        """Completion sets status and timestamp."""
        done = engine.complete(make_task(utc(2024, 1, 1), None), utc_noon)
        assert done.status is TaskStatus.COMPLETED
        assert done.completed_at == utc_noon

    def test_complete_is_idempotent(self, engine, utc_noon):
        """Completing twice keeps the first completion time."""
        done = engine.complete(make_task(utc(2024, 1, 1), None), utc_noon)
        assert engine.complete(done, utc(2024, 2, 1)) is done


class TestDueStatus:
    """Overdue and due-today checks by calendar day."""

    def test_overdue_by_calendar_day(self, utc_noon):
        """Yesterday is overdue; earlier today is not."""
        assert make_task(utc(2024, 1, 14, 23, 0), None).is_overdue(utc_noon)
        assert not make_task(utc(2024, 1, 15, 1, 0), None).is_overdue(utc_noon)
        assert make_task(utc(2024, 1, 15, 1, 0), None).is_due_today(utc_noon)

    def test_later_today_is_due_today(self, utc_noon):
        """A due time after now but on today's date counts as today."""
        task = make_task(utc(2024, 1, 15, 23, 30), None)
        assert task.is_due_today(utc_noon)
        assert not task.is_overdue(utc_noon)

    def test_completed_task_is_never_overdue(self, engine, utc_noon):
        """Completion clears the overdue flag."""
        done = engine.complete(make_task(utc(2024, 1, 1), None), utc_noon)
        assert not done.is_overdue(utc_noon)

    def test_no_due_date(self, utc_noon):
        """Undated tasks are neither overdue nor due today."""
        task = make_task(None, None)
        assert not task.is_overdue(utc_noon)
        assert not task.is_due_today(utc_noon)

    def test_days_follow_the_zone_of_now(self):
        """The same instant can be today in UTC and yesterday in New York."""
        due = make_task(utc(2024, 1, 15, 3, 0), None)
        new_york = tz.gettz("America/New_York")
        now_local = datetime(2024, 1, 15, 9, 0, tzinfo=new_york)

        # 03:00 UTC is 22:00 on the 14th in New York
        assert due.is_overdue(now_local)
        assert not due.is_due_today(now_local)
        assert due.is_due_today(now_local.astimezone(timezone.utc))
