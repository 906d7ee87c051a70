"""
SQL State Store for cadence.

Provides portable persistence for:
- SM-2 review state per flashcard
- Task occurrences and their recurrence rules
- Focus sessions (live and retired)
- The timeline activity log

Default database location: ~/.cadence/state.db (see config.Settings).
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cadence.core.errors import EntityNotFound
from cadence.db.models import (
    ActivityRow,
    Base,
    FocusSessionRow,
    MemorizationItemRow,
    TaskRow,
)
from cadence.study.review_scheduler import MasteryState, MemorizationItem
from cadence.study.session_timer import CycleConfig, FocusSession, SessionState, SessionType
from cadence.tasks.recurrence import (
    RecurrenceRule,
    RecurrenceType,
    RecurringTaskInstance,
    Subtask,
    TaskStatus,
)
from cadence.timeline.events import Activity, dump_activity, parse_activity


def _build_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise each checkout sees an empty database
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args={"check_same_thread": False})


class StateStore:
    """
    SQLAlchemy-backed persistence collaborator.

    Handles load/save for MemorizationItem, RecurringTaskInstance and
    FocusSession plus the append-only activity log. Saves are upserts, so
    the last write for an id wins.
    """

    def __init__(self, database_url: str | None = None):
        """
        Initialize the state store.

        Args:
            database_url: SQLAlchemy URL (defaults to settings.database_url)
        """
        if database_url is None:
            from config import get_settings

            database_url = get_settings().database_url

        self.database_url = database_url
        self.engine = _build_engine(database_url)
        self._session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        Base.metadata.create_all(bind=self.engine)

        logger.info(f"StateStore initialized at {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # Flashcards
    # =========================================================================

    def load_item(self, item_id: str) -> MemorizationItem:
        """
        Get review state for a flashcard.

        Raises:
            EntityNotFound: no item with this id
        """
        with self.session_scope() as session:
            row = session.get(MemorizationItemRow, item_id)
            if row is None:
                raise EntityNotFound("MemorizationItem", item_id)
            return _item_from_row(row)

    def save_item(self, item: MemorizationItem) -> None:
        """Insert or update a flashcard's review state."""
        with self.session_scope() as session:
            session.merge(
                MemorizationItemRow(
                    item_id=item.item_id,
                    deck_id=item.deck_id,
                    front=item.front,
                    back=item.back,
                    repetition_count=item.repetition_count,
                    ease_factor=item.ease_factor,
                    interval_days=item.interval_days,
                    next_review_at=item.next_review_at,
                    last_reviewed_at=item.last_reviewed_at,
                    mastery_state=item.mastery_state.value,
                )
            )

    def list_items(self, deck_id: str | None = None) -> list[MemorizationItem]:
        """All flashcards, optionally restricted to one deck."""
        with self.session_scope() as session:
            query = select(MemorizationItemRow).order_by(MemorizationItemRow.item_id)
            if deck_id is not None:
                query = query.where(MemorizationItemRow.deck_id == deck_id)
            return [_item_from_row(row) for row in session.scalars(query)]

    # =========================================================================
    # Tasks
    # =========================================================================

    def load_task(self, task_id: str) -> RecurringTaskInstance:
        """
        Get a task occurrence.

        Raises:
            EntityNotFound: no task with this id
        """
        with self.session_scope() as session:
            row = session.get(TaskRow, task_id)
            if row is None:
                raise EntityNotFound("RecurringTaskInstance", task_id)
            return _task_from_row(row)

    def save_task(self, task: RecurringTaskInstance) -> None:
        """Insert or update a task occurrence."""
        rule = task.recurrence_rule
        with self.session_scope() as session:
            session.merge(
                TaskRow(
                    task_id=task.task_id,
                    title=task.title,
                    due_at=task.due_at,
                    rule_type=rule.type.value if rule else None,
                    rule_interval=rule.interval if rule else None,
                    rule_end_at=rule.end_at if rule else None,
                    subtasks=[
                        {"subtask_id": s.subtask_id, "title": s.title, "completed": s.completed}
                        for s in task.subtasks
                    ],
                    status=task.status.value,
                    created_at=task.created_at,
                    completed_at=task.completed_at,
                )
            )

    def list_tasks(self, status: TaskStatus | None = None) -> list[RecurringTaskInstance]:
        """Tasks ordered by due date (undated last)."""
        with self.session_scope() as session:
            query = select(TaskRow)
            if status is not None:
                query = query.where(TaskRow.status == status.value)
            rows = list(session.scalars(query))
            tasks = [_task_from_row(row) for row in rows]
        tasks.sort(key=lambda t: (t.due_at is None, t.due_at.timestamp() if t.due_at else 0, t.task_id))
        return tasks

    # =========================================================================
    # Focus Sessions
    # =========================================================================

    def load_session(self, session_id: str) -> FocusSession:
        """
        Get a focus session.

        Raises:
            EntityNotFound: no session with this id
        """
        with self.session_scope() as session:
            row = session.get(FocusSessionRow, session_id)
            if row is None:
                raise EntityNotFound("FocusSession", session_id)
            return _session_from_row(row)

    def save_session(self, focus: FocusSession) -> None:
        """Insert or update a focus session."""
        config = focus.cycle_config
        with self.session_scope() as session:
            session.merge(
                FocusSessionRow(
                    session_id=focus.session_id,
                    session_type=focus.session_type.value,
                    duration_seconds=focus.duration_seconds,
                    elapsed_seconds=focus.elapsed_seconds,
                    state=focus.state.value,
                    completed_focus_count=focus.completed_focus_count,
                    cycle_config={
                        "focus_minutes": config.focus_minutes,
                        "short_break_minutes": config.short_break_minutes,
                        "long_break_minutes": config.long_break_minutes,
                        "sessions_before_long_break": config.sessions_before_long_break,
                        "auto_start_break": config.auto_start_break,
                        "auto_start_focus": config.auto_start_focus,
                    },
                    task_id=focus.task_id,
                    started_at=focus.started_at,
                    ended_at=focus.ended_at,
                    running_since=focus.running_since,
                    accumulated_seconds=focus.accumulated_seconds,
                    is_terminal=focus.is_terminal,
                )
            )

    def active_sessions(self) -> list[FocusSession]:
        """Sessions still running or paused, most recent first."""
        with self.session_scope() as session:
            query = (
                select(FocusSessionRow)
                .where(FocusSessionRow.is_terminal.is_(False))
                .order_by(FocusSessionRow.started_at.desc())
            )
            return [_session_from_row(row) for row in session.scalars(query)]

    # =========================================================================
    # Timeline
    # =========================================================================

    def append_activity(self, activity: Activity) -> None:
        """Log a timeline activity."""
        with self.session_scope() as session:
            session.add(
                ActivityRow(
                    activity_id=activity.activity_id,
                    kind=activity.kind,
                    occurred_at=activity.occurred_at,
                    payload=dump_activity(activity),
                )
            )

    def recent_activities(self, limit: int | None = 20, kind: str | None = None) -> list[Activity]:
        """Most recent activities first (all of them when limit is None)."""
        with self.session_scope() as session:
            query = select(ActivityRow)
            if kind is not None:
                query = query.where(ActivityRow.kind == kind)
            query = query.order_by(ActivityRow.occurred_at.desc())
            if limit is not None:
                query = query.limit(limit)
            return [parse_activity(row.payload) for row in session.scalars(query)]

    def get_stats(self) -> dict:
        """Row counts per table, for the CLI summary."""
        with self.session_scope() as session:
            return {
                "items": session.scalar(select(func.count()).select_from(MemorizationItemRow)),
                "tasks": session.scalar(select(func.count()).select_from(TaskRow)),
                "sessions": session.scalar(select(func.count()).select_from(FocusSessionRow)),
                "activities": session.scalar(select(func.count()).select_from(ActivityRow)),
            }


# =============================================================================
# Row Mapping
# =============================================================================


def _item_from_row(row: MemorizationItemRow) -> MemorizationItem:
    return MemorizationItem(
        item_id=row.item_id,
        deck_id=row.deck_id,
        front=row.front,
        back=row.back,
        repetition_count=row.repetition_count,
        ease_factor=row.ease_factor,
        interval_days=row.interval_days,
        next_review_at=row.next_review_at,
        last_reviewed_at=row.last_reviewed_at,
        mastery_state=MasteryState(row.mastery_state),
    )


def _task_from_row(row: TaskRow) -> RecurringTaskInstance:
    rule = None
    if row.rule_type is not None:
        rule = RecurrenceRule(
            type=RecurrenceType(row.rule_type),
            interval=row.rule_interval or 1,
            end_at=row.rule_end_at,
        )
    return RecurringTaskInstance(
        task_id=row.task_id,
        title=row.title,
        due_at=row.due_at,
        recurrence_rule=rule,
        subtasks=tuple(
            Subtask(subtask_id=s["subtask_id"], title=s["title"], completed=bool(s["completed"]))
            for s in (row.subtasks or [])
        ),
        status=TaskStatus(row.status),
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def _session_from_row(row: FocusSessionRow) -> FocusSession:
    return FocusSession(
        session_id=row.session_id,
        session_type=SessionType(row.session_type),
        duration_seconds=row.duration_seconds,
        cycle_config=CycleConfig(**row.cycle_config),
        elapsed_seconds=row.elapsed_seconds,
        state=SessionState(row.state),
        completed_focus_count=row.completed_focus_count,
        task_id=row.task_id,
        started_at=row.started_at,
        ended_at=row.ended_at,
        running_since=row.running_since,
        accumulated_seconds=row.accumulated_seconds,
    )
