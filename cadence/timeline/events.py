"""
Timeline activity events.

Each kind of activity is its own model with exactly the fields it needs,
discriminated by `kind`. Consumers match on the concrete class instead of
probing a bag of optional metadata.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _ActivityBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    activity_id: str
    occurred_at: datetime
    title: str


class CardReviewed(_ActivityBase):
    """A flashcard was reviewed."""

    kind: Literal["card_reviewed"] = "card_reviewed"
    item_id: str
    deck_id: str
    quality: Literal["again", "hard", "good", "easy"]
    interval_days: int = Field(ge=0)
    mastery_state: Literal["new", "learning", "review", "mastered"]


class TaskCompleted(_ActivityBase):
    """A task instance was completed."""

    kind: Literal["task_completed"] = "task_completed"
    task_id: str
    recurrence_ended: bool = False


class TaskRecurred(_ActivityBase):
    """A completed recurring task produced its next occurrence."""

    kind: Literal["task_recurred"] = "task_recurred"
    task_id: str
    successor_id: str
    next_due_at: datetime


class FocusSessionFinished(_ActivityBase):
    """A focus or break session reached a terminal state."""

    kind: Literal["focus_session_finished"] = "focus_session_finished"
    session_id: str
    session_type: Literal["focus", "short_break", "long_break"]
    outcome: Literal["completed", "canceled"]
    elapsed_seconds: int = Field(ge=0)
    duration_seconds: int = Field(gt=0)
    task_id: str | None = None

    @property
    def focus_minutes(self) -> int:
        """Minutes of completed focus this event contributes."""
        if self.session_type != "focus" or self.outcome != "completed":
            return 0
        return round(self.elapsed_seconds / 60)


Activity = Annotated[
    Union[CardReviewed, TaskCompleted, TaskRecurred, FocusSessionFinished],
    Field(discriminator="kind"),
]

_activity_adapter: TypeAdapter[Activity] = TypeAdapter(Activity)


def parse_activity(payload: str | bytes | dict) -> Activity:
    """Rebuild an activity from its JSON text or dict form."""
    if isinstance(payload, (str, bytes)):
        return _activity_adapter.validate_json(payload)
    return _activity_adapter.validate_python(payload)


def dump_activity(activity: Activity) -> str:
    """Serialize an activity to JSON (kind included)."""
    return activity.model_dump_json()


def total_focus_minutes(activities: list[Activity]) -> int:
    """Sum of completed focus minutes across a timeline."""
    return sum(a.focus_minutes for a in activities if isinstance(a, FocusSessionFinished))


# =============================================================================
# Daily Aggregates
# =============================================================================


@dataclass(frozen=True)
class DailyActivity:
    """Activities of one calendar day, most recent first."""

    day: date
    activities: list[Activity]

    @property
    def focus_minutes(self) -> int:
        return total_focus_minutes(self.activities)


@dataclass(frozen=True)
class Streak:
    """Consecutive active days ending today or yesterday, and the best run."""

    current: int = 0
    longest: int = 0


def _local_day(activity: Activity, zone: tzinfo) -> date:
    return activity.occurred_at.astimezone(zone).date()


def group_by_day(activities: list[Activity], zone: tzinfo = timezone.utc) -> list[DailyActivity]:
    """
    Group activities by calendar day in `zone`.

    Days are returned newest first; within a day activities are ordered
    newest first.
    """
    grouped: dict[date, list[Activity]] = {}
    for activity in activities:
        grouped.setdefault(_local_day(activity, zone), []).append(activity)

    return [
        DailyActivity(
            day=day,
            activities=sorted(grouped[day], key=lambda a: a.occurred_at, reverse=True),
        )
        for day in sorted(grouped, reverse=True)
    ]


def streak(activities: list[Activity], today: date, zone: tzinfo = timezone.utc) -> Streak:
    """
    Count consecutive days with at least one activity.

    The current streak only survives if the latest active day is today or
    yesterday; a two-day gap resets it to zero.

    Args:
        activities: Timeline entries in any order
        today: Today's date in `zone`
        zone: Timezone that defines calendar days
    """
    days = sorted({_local_day(a, zone) for a in activities}, reverse=True)
    if not days:
        return Streak()

    current = 0
    if days[0] >= today - timedelta(days=1):
        expected = days[0]
        for day in days:
            if day != expected:
                break
            current += 1
            expected -= timedelta(days=1)

    longest = run = 1
    for newer, older in zip(days, days[1:]):
        run = run + 1 if newer - older == timedelta(days=1) else 1
        longest = max(longest, run)

    return Streak(current=current, longest=longest)
