"""
Study Orchestrator.

Glue between user actions and the pure engines:

    load entity -> engine computes new value -> save -> log activity

The engines never touch storage, the clock or notifications themselves;
everything they need is passed in here.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable, Protocol

from loguru import logger

from cadence.core.clock import Clock, SystemClock, new_id
from cadence.core.errors import InvalidTransition, RecurrenceEnded
from cadence.notifications import Notifier, NullNotifier
from cadence.study.review_scheduler import (
    DeckStats,
    MemorizationItem,
    RecallQuality,
    ReviewPolicy,
    ReviewScheduler,
)
from cadence.study.session_timer import (
    CycleConfig,
    CycleDecision,
    FocusSession,
    SessionState,
    SessionTimer,
    SessionType,
)
from cadence.tasks.recurrence import (
    RecurrenceEngine,
    RecurrenceRule,
    RecurringTaskInstance,
    Subtask,
    TaskStatus,
)
from cadence.timeline.events import (
    Activity,
    CardReviewed,
    FocusSessionFinished,
    TaskCompleted,
    TaskRecurred,
)


class Repository(Protocol):
    """Persistence collaborator contract (see cadence.db.StateStore)."""

    def load_item(self, item_id: str) -> MemorizationItem: ...
    def save_item(self, item: MemorizationItem) -> None: ...
    def list_items(self, deck_id: str | None = None) -> list[MemorizationItem]: ...
    def load_task(self, task_id: str) -> RecurringTaskInstance: ...
    def save_task(self, task: RecurringTaskInstance) -> None: ...
    def load_session(self, session_id: str) -> FocusSession: ...
    def save_session(self, focus: FocusSession) -> None: ...
    def append_activity(self, activity: Activity) -> None: ...


@dataclass(frozen=True)
class TaskCompletion:
    """Outcome of completing a task."""

    completed: RecurringTaskInstance
    successor: RecurringTaskInstance | None = None
    recurrence_ended: bool = False


class StudyOrchestrator:
    """
    Coordinates the engines with persistence, clock and notifications.

    Errors raised by the engines propagate to the caller unchanged, with
    one exception: a RecurrenceEnded during task completion does not undo
    the completion and is reported through TaskCompletion instead.
    """

    def __init__(
        self,
        repository: Repository,
        clock: Clock | None = None,
        review_policy: ReviewPolicy | None = None,
        cycle_config: CycleConfig | None = None,
        notifier: Notifier | None = None,
        id_factory: Callable[[], str] = new_id,
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.review_policy = review_policy or ReviewPolicy()
        self.cycle_config = cycle_config or CycleConfig()
        self.notifier = notifier or NullNotifier()
        self.id_factory = id_factory

        self.reviews = ReviewScheduler(self.review_policy, self.clock)
        self.recurrence = RecurrenceEngine()
        self.timer = SessionTimer(self.clock, id_factory=id_factory)

    # =========================================================================
    # Flashcards
    # =========================================================================

    def add_card(self, front: str, back: str, deck_id: str = "default") -> MemorizationItem:
        item = MemorizationItem.create(
            self.id_factory(),
            self.clock.now(),
            front=front,
            back=back,
            deck_id=deck_id,
            policy=self.review_policy,
        )
        self.repository.save_item(item)
        logger.info(f"Added card {item.item_id} to deck {deck_id}")
        return item

    def review_card(self, item_id: str, quality: RecallQuality | str) -> MemorizationItem:
        """Record a recall judgment for a stored card and persist the result."""
        item = self.repository.load_item(item_id)
        reviewed = self.reviews.record_review(item, quality)
        self.repository.save_item(reviewed)

        self._log(
            CardReviewed(
                activity_id=self.id_factory(),
                occurred_at=reviewed.last_reviewed_at,
                title=f"Reviewed '{reviewed.front or reviewed.item_id}'",
                item_id=reviewed.item_id,
                deck_id=reviewed.deck_id,
                quality=RecallQuality.parse(quality).value,
                interval_days=reviewed.interval_days,
                mastery_state=reviewed.mastery_state.value,
            )
        )
        logger.info(
            f"Card {item_id} next review {reviewed.next_review_at.date().isoformat()} "
            f"({reviewed.interval_days}d)"
        )
        return reviewed

    def due_cards(self, deck_id: str | None = None) -> list[MemorizationItem]:
        return self.reviews.due_items(self.repository.list_items(deck_id), self.clock.now())

    def study_queue(self, deck_id: str | None = None, max_new: int = 20) -> list[MemorizationItem]:
        return self.reviews.study_queue(
            self.repository.list_items(deck_id), self.clock.now(), max_new=max_new
        )

    def deck_stats(self, deck_id: str | None = None) -> DeckStats:
        return self.reviews.deck_stats(self.repository.list_items(deck_id), self.clock.now())

    # =========================================================================
    # Tasks
    # =========================================================================

    def add_task(
        self,
        title: str,
        due_at: datetime | None = None,
        rule: RecurrenceRule | None = None,
        subtask_titles: Iterable[str] = (),
    ) -> RecurringTaskInstance:
        task_id = self.id_factory()
        task = RecurringTaskInstance(
            task_id=task_id,
            title=title,
            due_at=due_at,
            recurrence_rule=rule,
            subtasks=tuple(
                Subtask(subtask_id=self.id_factory(), title=subtask_title)
                for subtask_title in subtask_titles
            ),
            created_at=self.clock.now(),
        )
        self.repository.save_task(task)
        logger.info(f"Added task {task_id}: {title}")
        return task

    def complete_task(self, task_id: str) -> TaskCompletion:
        """
        Complete a task and, if it recurs, create its next occurrence.

        Raises:
            EntityNotFound: unknown task id
            InvalidTransition: the task was already completed
        """
        now = self.clock.now()
        task = self.repository.load_task(task_id)
        if task.status is TaskStatus.COMPLETED:
            raise InvalidTransition(f"Task {task_id} is already completed", event="complete")
        completed = self.recurrence.complete(task, now)
        self.repository.save_task(completed)

        successor = None
        ended = False
        if completed.is_recurring and completed.due_at is not None:
            try:
                successor = self.recurrence.next_occurrence(self._localize_task(completed), now)
            except RecurrenceEnded as exc:
                ended = True
                logger.info(f"No successor for task {task_id}: {exc}")

        self._log(
            TaskCompleted(
                activity_id=self.id_factory(),
                occurred_at=now,
                title=f"Completed '{completed.title}'",
                task_id=task_id,
                recurrence_ended=ended,
            )
        )

        if successor is not None:
            self.repository.save_task(successor)
            self._log(
                TaskRecurred(
                    activity_id=self.id_factory(),
                    occurred_at=now,
                    title=f"Scheduled next '{successor.title}'",
                    task_id=task_id,
                    successor_id=successor.task_id,
                    next_due_at=successor.due_at,
                )
            )

        return TaskCompletion(completed=completed, successor=successor, recurrence_ended=ended)

    def _localize_task(self, task: RecurringTaskInstance) -> RecurringTaskInstance:
        # Storage returns UTC; calendar steps must run in the user's zone
        zone = self.clock.now().tzinfo
        return replace(task, due_at=task.due_at.astimezone(zone))

    # =========================================================================
    # Focus Sessions
    # =========================================================================

    def start_focus(
        self,
        session_type: SessionType | str = SessionType.FOCUS,
        task_id: str | None = None,
        completed_focus_count: int = 0,
    ) -> FocusSession:
        focus = self.timer.start(
            session_type,
            cycle_config=self.cycle_config,
            completed_focus_count=completed_focus_count,
            task_id=task_id,
        )
        self.repository.save_session(focus)
        return focus

    def tick_focus(self, session_id: str, seconds: int) -> FocusSession:
        focus = self.repository.load_session(session_id)
        return self._store_transition(focus, self.timer.tick(focus, seconds))

    def sync_focus(self, session_id: str) -> FocusSession:
        """Bring a stored session up to date with the clock."""
        focus = self.repository.load_session(session_id)
        return self._store_transition(focus, self.timer.sync(focus, self.clock.now()))

    def pause_focus(self, session_id: str) -> FocusSession:
        stored = self.repository.load_session(session_id)
        focus = self.timer.sync(stored, self.clock.now())
        if self._ran_out(stored, focus):
            return self._store_transition(stored, focus)
        return self._store_transition(stored, self.timer.pause(focus))

    def resume_focus(self, session_id: str) -> FocusSession:
        focus = self.repository.load_session(session_id)
        return self._store_transition(focus, self.timer.resume(focus))

    def cancel_focus(self, session_id: str) -> FocusSession:
        stored = self.repository.load_session(session_id)
        focus = self.timer.sync(stored, self.clock.now())
        if self._ran_out(stored, focus):
            return self._store_transition(stored, focus)
        return self._store_transition(stored, self.timer.cancel(focus))

    def next_focus(self, session_id: str, start: bool = False) -> CycleDecision:
        """
        Sequence the session after a completed one.

        The next session is saved when the engine auto-started it, or when
        `start` asks for it explicitly.
        """
        focus = self.repository.load_session(session_id)
        decision = self.timer.advance_cycle(focus)
        next_session = decision.session
        if next_session is None and start:
            next_session = self.timer.start_next(decision)
        if next_session is not None:
            self.repository.save_session(next_session)
        return replace(decision, session=next_session)

    @staticmethod
    def _ran_out(before: FocusSession, after: FocusSession) -> bool:
        # The duration elapsed while suspended; the session completed first
        return after.state is SessionState.COMPLETED and before.state is not SessionState.COMPLETED

    def _store_transition(self, before: FocusSession, after: FocusSession) -> FocusSession:
        self.repository.save_session(after)
        if after.is_terminal and not before.is_terminal:
            self._retire(after)
        return after

    def _retire(self, focus: FocusSession) -> None:
        self._log(
            FocusSessionFinished(
                activity_id=self.id_factory(),
                occurred_at=focus.ended_at or self.clock.now(),
                title=f"{focus.session_type.value.replace('_', ' ').title()} session {focus.state.value}",
                session_id=focus.session_id,
                session_type=focus.session_type.value,
                outcome=focus.state.value,
                elapsed_seconds=focus.elapsed_seconds,
                duration_seconds=focus.duration_seconds,
                task_id=focus.task_id,
            )
        )
        if focus.state is SessionState.COMPLETED:
            self.notifier.session_completed(focus)

    # =========================================================================
    # Timeline
    # =========================================================================

    def _log(self, activity: Activity) -> None:
        self.repository.append_activity(activity)
        logger.debug(f"Activity {activity.kind}: {activity.title}")
