"""
State store table models.

One table per persisted entity plus an append-only activity log. Times
are stored as UTC ISO-8601 text so aware datetimes survive SQLite, which
has no timezone-aware type, and sort correctly as strings.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Float, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class Base(DeclarativeBase):
    pass


class AwareDateTime(TypeDecorator):
    """Aware datetime persisted as ISO-8601 text."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> str | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Refusing to store naive datetime {value!r}")
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

    def process_result_value(self, value: str | None, dialect) -> datetime | None:
        if value is None:
            return None
        return datetime.fromisoformat(value)


# ========================================
# FLASHCARDS
# ========================================


class MemorizationItemRow(Base):
    """SM-2 review state per flashcard."""

    __tablename__ = "memorization_items"

    item_id: Mapped[str] = mapped_column(Text, primary_key=True)
    deck_id: Mapped[str] = mapped_column(Text, nullable=False, default="default")
    front: Mapped[str] = mapped_column(Text, nullable=False, default="")
    back: Mapped[str] = mapped_column(Text, nullable=False, default="")
    repetition_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review_at: Mapped[datetime] = mapped_column(AwareDateTime, nullable=False)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(AwareDateTime)
    mastery_state: Mapped[str] = mapped_column(Text, nullable=False, default="new")

    __table_args__ = (Index("idx_items_next_review", "next_review_at"),)


# ========================================
# TASKS
# ========================================


class TaskRow(Base):
    """A task occurrence with its (optional) recurrence rule."""

    __tablename__ = "tasks"

    task_id: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    due_at: Mapped[datetime | None] = mapped_column(AwareDateTime)
    rule_type: Mapped[str | None] = mapped_column(Text)
    rule_interval: Mapped[int | None] = mapped_column(Integer)
    rule_end_at: Mapped[datetime | None] = mapped_column(AwareDateTime)
    subtasks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    created_at: Mapped[datetime | None] = mapped_column(AwareDateTime)
    completed_at: Mapped[datetime | None] = mapped_column(AwareDateTime)


# ========================================
# FOCUS SESSIONS
# ========================================


class FocusSessionRow(Base):
    """A Pomodoro session, live or retired."""

    __tablename__ = "focus_sessions"

    session_id: Mapped[str] = mapped_column(Text, primary_key=True)
    session_type: Mapped[str] = mapped_column(Text, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    elapsed_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    completed_focus_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cycle_config: Mapped[dict] = mapped_column(JSON, nullable=False)
    task_id: Mapped[str | None] = mapped_column(Text)
    started_at: Mapped[datetime | None] = mapped_column(AwareDateTime)
    ended_at: Mapped[datetime | None] = mapped_column(AwareDateTime)
    running_since: Mapped[datetime | None] = mapped_column(AwareDateTime)
    accumulated_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_terminal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# ========================================
# TIMELINE
# ========================================


class ActivityRow(Base):
    """Append-only activity log; payload is the event's JSON."""

    __tablename__ = "activities"

    activity_id: Mapped[str] = mapped_column(Text, primary_key=True)
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(AwareDateTime, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (Index("idx_activities_occurred", "occurred_at"),)
