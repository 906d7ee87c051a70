"""
Pomodoro Session Timer.

State machine for a single timed focus/break session, plus the
sequencing of sessions within a Pomodoro cycle:

    focus -> short break -> focus -> short break -> ... -> long break

Session Flow:
1. start() creates a running session
2. tick(Δ) advances elapsed time while running; reaching the duration
   completes the session
3. pause()/resume() freeze and unfreeze the timer
4. cancel() abandons a running or paused session
5. advance_cycle() on a completed session decides what comes next

The timer owns no clock loop. Callers tick it at their own cadence and
use sync() to recover time missed while the app was suspended.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable

from loguru import logger

from cadence.core.calendar import whole_seconds_between
from cadence.core.clock import Clock, SystemClock, new_id
from cadence.core.errors import InvalidPolicy, InvalidTransition


class SessionType(str, Enum):
    """Kind of block within a Pomodoro cycle."""

    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_break(self) -> bool:
        return self is not SessionType.FOCUS

    @classmethod
    def parse(cls, value: SessionType | str) -> SessionType:
        """Coerce a session type or its string value, else raise InvalidPolicy."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidPolicy(
                f"Unknown session type {value!r}; expected one of "
                f"{', '.join(t.value for t in cls)}"
            ) from None


class SessionState(str, Enum):
    """Lifecycle state of a focus session."""

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.CANCELED)


@dataclass(frozen=True)
class CycleConfig:
    """Durations (minutes) and auto-start behaviour of a Pomodoro cycle."""

    focus_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    sessions_before_long_break: int = 4
    auto_start_break: bool = False
    auto_start_focus: bool = False

    # (min, max) accepted for each numeric knob
    LIMITS = {
        "focus_minutes": (1, 90),
        "short_break_minutes": (1, 30),
        "long_break_minutes": (1, 60),
        "sessions_before_long_break": (2, 10),
    }

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise InvalidPolicy when a value is outside its accepted range."""
        for name, (low, high) in self.LIMITS.items():
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidPolicy(f"{name} must be an integer, got {value!r}")
            if not low <= value <= high:
                raise InvalidPolicy(f"{name} must be between {low} and {high}, got {value}")

    def duration_seconds(self, session_type: SessionType) -> int:
        minutes = {
            SessionType.FOCUS: self.focus_minutes,
            SessionType.SHORT_BREAK: self.short_break_minutes,
            SessionType.LONG_BREAK: self.long_break_minutes,
        }[session_type]
        return minutes * 60

    def auto_starts(self, session_type: SessionType) -> bool:
        """Whether a session of this type begins without user action."""
        return self.auto_start_break if session_type.is_break else self.auto_start_focus


@dataclass(frozen=True)
class FocusSession:
    """One run of the timer."""

    session_id: str
    session_type: SessionType
    duration_seconds: int
    cycle_config: CycleConfig
    elapsed_seconds: int = 0
    state: SessionState = SessionState.RUNNING
    completed_focus_count: int = 0  # Focus sessions completed in this cycle
    task_id: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    # Wall-clock anchor for sync(): elapsed == accumulated + (now - running_since)
    running_since: datetime | None = None
    accumulated_seconds: int = 0

    @property
    def remaining_seconds(self) -> int:
        return self.duration_seconds - self.elapsed_seconds

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def progress(self) -> float:
        """Fraction of the duration elapsed (0.0-1.0)."""
        return self.elapsed_seconds / self.duration_seconds


@dataclass(frozen=True)
class CycleDecision:
    """
    What follows a completed session.

    session is a running FocusSession when the relevant auto-start flag
    is set; otherwise it is None and the caller starts it later with
    SessionTimer.start_next().
    """

    next_type: SessionType
    completed_focus_count: int
    auto_start: bool
    cycle_config: CycleConfig
    task_id: str | None = None
    session: FocusSession | None = None


class SessionTimer:
    """
    Engine for focus/break sessions.

    Every method takes a session and returns a new one; sessions are
    never mutated in place.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        id_factory: Callable[[], str] = new_id,
    ):
        self.clock = clock or SystemClock()
        self.id_factory = id_factory

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(
        self,
        session_type: SessionType | str,
        cycle_config: CycleConfig | None = None,
        completed_focus_count: int = 0,
        task_id: str | None = None,
    ) -> FocusSession:
        """
        Start a new running session.

        Args:
            session_type: focus, short_break or long_break
            cycle_config: Cycle durations (defaults to the classic 25/5/15 x4)
            completed_focus_count: Focus sessions already completed in the cycle
            task_id: Optional task the session is attributed to

        Returns:
            FocusSession in the running state
        """
        session_type = SessionType.parse(session_type)
        config = cycle_config or CycleConfig()
        config.validate()
        if completed_focus_count < 0:
            raise InvalidPolicy("completed_focus_count cannot be negative")

        now = self.clock.now()
        session = FocusSession(
            session_id=self.id_factory(),
            session_type=session_type,
            duration_seconds=config.duration_seconds(session_type),
            cycle_config=config,
            completed_focus_count=completed_focus_count,
            task_id=task_id,
            started_at=now,
            running_since=now,
        )

        logger.debug(
            f"Started {session_type.value} session {session.session_id} "
            f"({session.duration_seconds}s, cycle count={completed_focus_count})"
        )
        return session

    def tick(self, session: FocusSession, seconds: int) -> FocusSession:
        """
        Advance a running session by `seconds`.

        Elapsed time is clamped to the duration; reaching it completes the
        session. Ticks delivered while paused are ignored.
        """
        self._require_live(session, "tick")
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
            raise InvalidTransition(
                f"tick delta must be a non-negative integer, got {seconds!r}",
                state=session.state,
                event="tick",
            )
        if session.state is SessionState.PAUSED or seconds == 0:
            return session

        elapsed = min(session.duration_seconds, session.elapsed_seconds + seconds)
        if elapsed < session.duration_seconds:
            return replace(session, elapsed_seconds=elapsed)

        logger.debug(f"Session {session.session_id} reached {session.duration_seconds}s")
        return replace(
            session,
            elapsed_seconds=session.duration_seconds,
            state=SessionState.COMPLETED,
            ended_at=self.clock.now(),
            running_since=None,
            accumulated_seconds=session.duration_seconds,
        )

    def pause(self, session: FocusSession) -> FocusSession:
        """Freeze a running session."""
        self._require(session, SessionState.RUNNING, "pause")
        return replace(
            session,
            state=SessionState.PAUSED,
            running_since=None,
            accumulated_seconds=session.elapsed_seconds,
        )

    def resume(self, session: FocusSession) -> FocusSession:
        """Continue a paused session."""
        self._require(session, SessionState.PAUSED, "resume")
        return replace(
            session,
            state=SessionState.RUNNING,
            running_since=self.clock.now(),
            accumulated_seconds=session.elapsed_seconds,
        )

    def cancel(self, session: FocusSession) -> FocusSession:
        """Abandon a running or paused session."""
        self._require_live(session, "cancel")
        logger.debug(
            f"Canceled {session.session_type.value} session {session.session_id} "
            f"at {session.elapsed_seconds}/{session.duration_seconds}s"
        )
        return replace(
            session,
            state=SessionState.CANCELED,
            ended_at=self.clock.now(),
            running_since=None,
            accumulated_seconds=session.elapsed_seconds,
        )

    def sync(self, session: FocusSession, now: datetime | None = None) -> FocusSession:
        """
        Catch a running session up with the wall clock.

        Elapsed is recomputed as accumulated + (now - running_since) instead
        of trusting that every periodic tick arrived, so time spent while
        the process was suspended is not lost. Paused and terminal
        sessions are returned unchanged.
        """
        if session.state is not SessionState.RUNNING or session.running_since is None:
            return session

        now = now or self.clock.now()
        target = session.accumulated_seconds + whole_seconds_between(session.running_since, now)
        missing = target - session.elapsed_seconds
        if missing <= 0:
            return session
        return self.tick(session, missing)

    # =========================================================================
    # Cycle Sequencing
    # =========================================================================

    def advance_cycle(self, session: FocusSession) -> CycleDecision:
        """
        Decide which session follows a completed one.

        - focus: count + 1; every Nth completion earns a long break,
          otherwise a short break.
        - short break: back to focus, count unchanged.
        - long break: back to focus, count reset to 0 for the new cycle.

        Raises:
            InvalidTransition: the session has not completed
        """
        self._require(session, SessionState.COMPLETED, "advance_cycle")
        config = session.cycle_config

        if session.session_type is SessionType.FOCUS:
            count = session.completed_focus_count + 1
            if count % config.sessions_before_long_break == 0:
                next_type = SessionType.LONG_BREAK
            else:
                next_type = SessionType.SHORT_BREAK
        elif session.session_type is SessionType.LONG_BREAK:
            count = 0
            next_type = SessionType.FOCUS
        else:
            count = session.completed_focus_count
            next_type = SessionType.FOCUS

        decision = CycleDecision(
            next_type=next_type,
            completed_focus_count=count,
            auto_start=config.auto_starts(next_type),
            cycle_config=config,
            task_id=session.task_id,
        )

        logger.debug(
            f"Cycle after {session.session_type.value}: next={next_type.value}, "
            f"count={count}, auto_start={decision.auto_start}"
        )

        if decision.auto_start:
            return replace(decision, session=self.start_next(decision))
        return decision

    def start_next(self, decision: CycleDecision) -> FocusSession:
        """Start the session a CycleDecision describes."""
        return self.start(
            decision.next_type,
            cycle_config=decision.cycle_config,
            completed_focus_count=decision.completed_focus_count,
            task_id=decision.task_id,
        )

    # =========================================================================
    # Guards
    # =========================================================================

    @staticmethod
    def _require(session: FocusSession, state: SessionState, event: str) -> None:
        if session.state is not state:
            raise InvalidTransition(
                f"cannot {event} a {session.state.value} session (requires {state.value})",
                state=session.state,
                event=event,
            )

    @staticmethod
    def _require_live(session: FocusSession, event: str) -> None:
        if session.state.is_terminal:
            raise InvalidTransition(
                f"cannot {event} a {session.state.value} session",
                state=session.state,
                event=event,
            )
