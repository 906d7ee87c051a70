"""
SM-2 Spaced Repetition Scheduler.

Implements:
- SM-2 algorithm for review intervals and ease factors
- Mastery classification derived from repetition count and interval
- Due-item selection and study queue ordering

Recall Quality Scale (mapped onto SM-2 grades):
again - Forgot completely (grade 0)
hard  - Recalled with serious difficulty (grade 3)
good  - Recalled with normal effort (grade 4)
easy  - Recalled with no effort (grade 5)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable

from loguru import logger

from cadence.core.calendar import add_days, round_half_up
from cadence.core.clock import Clock, SystemClock
from cadence.core.errors import InvalidPolicy, InvalidQuality

# =============================================================================
# Enums
# =============================================================================


class RecallQuality(str, Enum):
    """How well the learner recalled an item."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def grade(self) -> int:
        """SM-2 grade (0-5) for this quality."""
        return _SM2_GRADES[self]

    @classmethod
    def parse(cls, value: RecallQuality | str) -> RecallQuality:
        """Coerce a quality or its string value, else raise InvalidQuality."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidQuality(
                f"Unknown recall quality {value!r}; expected one of "
                f"{', '.join(q.value for q in cls)}"
            ) from None


_SM2_GRADES = {
    RecallQuality.AGAIN: 0,
    RecallQuality.HARD: 3,
    RecallQuality.GOOD: 4,
    RecallQuality.EASY: 5,
}

# EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), evaluated per grade
_EASE_DELTAS = {
    RecallQuality.HARD: -0.14,
    RecallQuality.GOOD: 0.0,
    RecallQuality.EASY: 0.10,
}


class MasteryState(str, Enum):
    """Coarse learning progress of a memorization item."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


# =============================================================================
# Policy
# =============================================================================


@dataclass(frozen=True)
class ReviewPolicy:
    """Tunables for the SM-2 scheduler."""

    starting_ease: float = 2.5
    minimum_ease: float = 1.3
    again_ease_penalty: float = 0.8
    easy_bonus_days: int = 2
    hard_penalty_days: int = 1
    initial_steps: tuple[int, int] = (1, 6)  # Days for first and second success
    mastery_repetitions: int = 5
    mastery_interval_days: int = 21

    # Accepted ranges for the user-facing knobs
    MAX_EASY_BONUS_DAYS = 10
    MAX_HARD_PENALTY_DAYS = 5

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise InvalidPolicy when the bounds are inconsistent."""
        if self.minimum_ease <= 0:
            raise InvalidPolicy(f"minimum_ease must be positive, got {self.minimum_ease}")
        if self.minimum_ease >= self.starting_ease:
            raise InvalidPolicy(
                f"minimum_ease ({self.minimum_ease}) must be below "
                f"starting_ease ({self.starting_ease})"
            )
        if self.again_ease_penalty < 0:
            raise InvalidPolicy("again_ease_penalty cannot be negative")
        if not 0 <= self.easy_bonus_days <= self.MAX_EASY_BONUS_DAYS:
            raise InvalidPolicy(
                f"easy_bonus_days must be between 0 and {self.MAX_EASY_BONUS_DAYS}"
            )
        if not 0 <= self.hard_penalty_days <= self.MAX_HARD_PENALTY_DAYS:
            raise InvalidPolicy(
                f"hard_penalty_days must be between 0 and {self.MAX_HARD_PENALTY_DAYS}"
            )
        if len(self.initial_steps) != 2:
            raise InvalidPolicy("initial_steps needs exactly two entries")
        first, second = self.initial_steps
        if first < 1 or second < first:
            raise InvalidPolicy(
                f"initial_steps must be positive and non-decreasing, got {self.initial_steps}"
            )
        if self.mastery_repetitions < 1 or self.mastery_interval_days < 1:
            raise InvalidPolicy("mastery thresholds must be positive")

    def mastery_state(self, repetition_count: int, interval_days: int) -> MasteryState:
        """Classify progress; a pure function of repetitions and interval."""
        if repetition_count == 0:
            return MasteryState.NEW if interval_days == 0 else MasteryState.LEARNING
        if (
            repetition_count >= self.mastery_repetitions
            and interval_days >= self.mastery_interval_days
        ):
            return MasteryState.MASTERED
        return MasteryState.REVIEW


DEFAULT_POLICY = ReviewPolicy()


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class MemorizationItem:
    """Review state of a single flashcard."""

    item_id: str
    next_review_at: datetime
    front: str = ""
    back: str = ""
    deck_id: str = "default"
    repetition_count: int = 0  # Consecutive successful recalls
    ease_factor: float = 2.5
    interval_days: int = 0
    last_reviewed_at: datetime | None = None
    mastery_state: MasteryState = MasteryState.NEW

    def __post_init__(self):
        if self.repetition_count < 0:
            raise InvalidPolicy(
                f"repetition_count cannot be negative, got {self.repetition_count} ({self.item_id})"
            )
        if self.interval_days < 0:
            raise InvalidPolicy(
                f"interval_days cannot be negative, got {self.interval_days} ({self.item_id})"
            )

    @classmethod
    def create(
        cls,
        item_id: str,
        now: datetime,
        front: str = "",
        back: str = "",
        deck_id: str = "default",
        policy: ReviewPolicy = DEFAULT_POLICY,
    ) -> MemorizationItem:
        """A never-reviewed item, due immediately."""
        return cls(
            item_id=item_id,
            next_review_at=now,
            front=front,
            back=back,
            deck_id=deck_id,
            ease_factor=policy.starting_ease,
        )

    def is_due(self, now: datetime) -> bool:
        return self.next_review_at <= now

    @property
    def is_new(self) -> bool:
        return self.repetition_count == 0 and self.last_reviewed_at is None


@dataclass(frozen=True)
class DeckStats:
    """Counts of items per mastery state plus items due now."""

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    mastered: int = 0
    due: int = 0
    by_state: dict[str, int] = field(default_factory=dict)


# =============================================================================
# SM-2 Algorithm
# =============================================================================


class ReviewScheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each item carries:
    - Ease Factor (EF): how quickly intervals grow (2.5 default, floor 1.3)
    - Interval: calendar days until the next review
    - Repetitions: consecutive successful recalls

    The scheduler is pure: record_review returns a new item and never
    touches the one passed in.
    """

    def __init__(self, policy: ReviewPolicy | None = None, clock: Clock | None = None):
        """
        Initialize the scheduler.

        Args:
            policy: Default policy (uses ReviewPolicy() if None)
            clock: Time source (system UTC clock if None)
        """
        self.policy = policy or DEFAULT_POLICY
        self.clock = clock or SystemClock()

    def record_review(
        self,
        item: MemorizationItem,
        quality: RecallQuality | str,
        policy: ReviewPolicy | None = None,
    ) -> MemorizationItem:
        """
        Apply one recall judgment and schedule the next review.

        Args:
            item: Current review state
            quality: again/hard/good/easy
            policy: Overrides the scheduler's default policy for this call

        Returns:
            New MemorizationItem with updated interval, ease and due date

        Raises:
            InvalidQuality: quality is not a RecallQuality
            InvalidPolicy: policy bounds are inconsistent, or the item's
                ease is already below the policy floor
        """
        quality = RecallQuality.parse(quality)
        policy = policy or self.policy
        policy.validate()
        now = self.clock.now()

        if item.ease_factor < policy.minimum_ease:
            raise InvalidPolicy(
                f"ease_factor {item.ease_factor} of {item.item_id} is below "
                f"the policy floor {policy.minimum_ease}"
            )
        ease = item.ease_factor

        if quality is RecallQuality.AGAIN:
            repetitions = 0
            interval = 1
            ease = max(policy.minimum_ease, ease - policy.again_ease_penalty)
        else:
            repetitions = item.repetition_count + 1
            ease = max(policy.minimum_ease, ease + self._ease_delta(quality))
            interval = self._success_interval(repetitions, item.interval_days, ease, policy)

            if quality is RecallQuality.EASY:
                interval += policy.easy_bonus_days
            elif quality is RecallQuality.HARD:
                interval = max(1, interval - policy.hard_penalty_days)

            if quality is not RecallQuality.HARD:
                # A successful recall never shortens the gap
                interval = max(interval, item.interval_days)

        reviewed = replace(
            item,
            repetition_count=repetitions,
            ease_factor=round(ease, 4),
            interval_days=interval,
            next_review_at=add_days(now, interval),
            last_reviewed_at=now,
            mastery_state=policy.mastery_state(repetitions, interval),
        )

        logger.debug(
            f"Reviewed {item.item_id}: quality={quality.value}, reps={repetitions}, "
            f"interval={interval}d, ease={reviewed.ease_factor}, "
            f"state={reviewed.mastery_state.value}"
        )

        return reviewed

    @staticmethod
    def _ease_delta(quality: RecallQuality) -> float:
        return _EASE_DELTAS[quality]

    @staticmethod
    def _success_interval(
        repetitions: int,
        previous_interval: int,
        ease: float,
        policy: ReviewPolicy,
    ) -> int:
        first, second = policy.initial_steps
        if repetitions == 1:
            return first
        if repetitions == 2:
            return second
        return max(1, round_half_up(previous_interval * ease))

    # =========================================================================
    # Queries
    # =========================================================================

    def due_items(
        self,
        items: Iterable[MemorizationItem],
        now: datetime | None = None,
    ) -> list[MemorizationItem]:
        """
        Items whose next review is at or before now.

        Ordered by next_review_at ascending, ties broken by item_id.
        """
        now = now or self.clock.now()
        due = [item for item in items if item.next_review_at <= now]
        due.sort(key=lambda i: (i.next_review_at, i.item_id))
        return due

    def study_queue(
        self,
        items: Iterable[MemorizationItem],
        now: datetime | None = None,
        max_new: int = 20,
    ) -> list[MemorizationItem]:
        """
        Build today's study queue.

        Order:
        1. Due reviewed items
        2. Learning items (lapsed cards) not yet due, soonest first
        3. Up to max_new never-reviewed items

        New items are due on creation, so they are pulled out of the due
        list rather than counted twice.
        """
        items = list(items)
        now = now or self.clock.now()

        due_reviewed = [i for i in self.due_items(items, now) if not i.is_new]
        learning = sorted(
            (
                i
                for i in items
                if i.mastery_state is MasteryState.LEARNING and not i.is_due(now)
            ),
            key=lambda i: (i.next_review_at, i.item_id),
        )
        new_items = sorted((i for i in items if i.is_new), key=lambda i: i.item_id)

        queue = due_reviewed + learning + new_items[: max(0, max_new)]
        logger.debug(
            f"Study queue: {len(due_reviewed)} due + {len(learning)} learning + "
            f"{min(len(new_items), max(0, max_new))} new"
        )
        return queue

    def deck_stats(
        self,
        items: Iterable[MemorizationItem],
        now: datetime | None = None,
    ) -> DeckStats:
        """Summarize a deck by mastery state."""
        now = now or self.clock.now()
        counts = {state.value: 0 for state in MasteryState}
        total = 0
        due = 0

        for item in items:
            total += 1
            counts[item.mastery_state.value] += 1
            if item.next_review_at <= now:
                due += 1

        return DeckStats(
            total=total,
            new=counts[MasteryState.NEW.value],
            learning=counts[MasteryState.LEARNING.value],
            review=counts[MasteryState.REVIEW.value],
            mastered=counts[MasteryState.MASTERED.value],
            due=due,
            by_state=counts,
        )
