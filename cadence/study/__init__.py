"""
Study Module.

Provides the scheduling engines for study sessions:
- Spaced repetition review scheduling (SM-2)
- Pomodoro focus/break session timing and cycle sequencing
"""

from cadence.study.review_scheduler import (
    DeckStats,
    MasteryState,
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

__all__ = [
    # Review scheduling
    "ReviewScheduler",
    "ReviewPolicy",
    "MemorizationItem",
    "RecallQuality",
    "MasteryState",
    "DeckStats",
    # Focus sessions
    "SessionTimer",
    "SessionType",
    "SessionState",
    "FocusSession",
    "CycleConfig",
    "CycleDecision",
]
