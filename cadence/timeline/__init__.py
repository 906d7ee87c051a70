"""
Timeline Module.

Activity log entries recorded by the orchestrator, one model per kind.
"""

from cadence.timeline.events import (
    Activity,
    CardReviewed,
    FocusSessionFinished,
    TaskCompleted,
    TaskRecurred,
    DailyActivity,
    Streak,
    dump_activity,
    group_by_day,
    parse_activity,
    streak,
    total_focus_minutes,
)

__all__ = [
    "Activity",
    "CardReviewed",
    "TaskCompleted",
    "TaskRecurred",
    "FocusSessionFinished",
    "parse_activity",
    "dump_activity",
    "total_focus_minutes",
    "DailyActivity",
    "Streak",
    "group_by_day",
    "streak",
]
