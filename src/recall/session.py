"""
Session Composer.

Builds the ordered, bounded list of words presented in one study
session and tracks answers while the session runs.

Modes:
- normal:  mixed session, 50% new / 30% needs-review / rest learned
           (falls back to 70% needs-review / 30% learned, then learned only)
- unseen:  every new word
- learned: every learned word, due-soonest first

Ordering is a per-mode policy. With the default settings each bucket is
prioritized by due date and then shuffled before the first N words are
taken, and the final session is shuffled again in every mode. That final
shuffle undoes the due-date order of learned mode; ORDERED keeps it.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from .scheduler import SM2Scheduler, prioritize, round_half_up
from .word import Word, WordStatus

if TYPE_CHECKING:
    from config import Settings


class SessionMode(str, Enum):
    """Session-composition policy."""

    NORMAL = "normal"
    UNSEEN = "unseen"
    LEARNED = "learned"


class OrderingPolicy(str, Enum):
    """How a selection is ordered."""

    ORDERED = "ordered"  # Keep due-date priority order
    SHUFFLED = "shuffled"  # Uniform shuffle


def _default_final_ordering() -> dict[SessionMode, OrderingPolicy]:
    return {mode: OrderingPolicy.SHUFFLED for mode in SessionMode}


@dataclass
class SessionPolicy:
    """Sizes, ratios and ordering strategies for session composition."""

    max_size: int = 10
    new_ratio: float = 0.5
    review_ratio: float = 0.3
    fallback_review_ratio: float = 0.7  # When no new words are left
    bucket_ordering: OrderingPolicy = OrderingPolicy.SHUFFLED
    final_ordering: dict[SessionMode, OrderingPolicy] = field(
        default_factory=_default_final_ordering
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionPolicy:
        """Build a policy from application settings."""
        return cls(
            max_size=settings.session_max_size,
            new_ratio=settings.session_new_ratio,
            review_ratio=settings.session_review_ratio,
            fallback_review_ratio=settings.session_fallback_review_ratio,
            bucket_ordering=OrderingPolicy(settings.session_bucket_ordering),
            final_ordering={
                SessionMode.NORMAL: OrderingPolicy(settings.session_ordering_normal),
                SessionMode.UNSEEN: OrderingPolicy(settings.session_ordering_unseen),
                SessionMode.LEARNED: OrderingPolicy(settings.session_ordering_learned),
            },
        )


def ratio_count(size: int, ratio: float) -> int:
    """Ceiling of size * ratio without float artefacts (ceil(10 * 0.3) == 3)."""
    return math.ceil(round(size * ratio, 9))


@dataclass
class Buckets:
    """A word pool partitioned by status."""

    new: list[Word] = field(default_factory=list)
    learned: list[Word] = field(default_factory=list)
    needs_review: list[Word] = field(default_factory=list)


class SessionComposer:
    """
    Selects and orders the words of a study session.

    Pure apart from the random generator: the pool is never mutated.
    """

    def __init__(self, policy: SessionPolicy | None = None, rng: random.Random | None = None):
        """
        Initialize the composer.

        Args:
            policy: Sizes, ratios and orderings (defaults if None)
            rng: Random generator; pass a seeded one for reproducible sessions
        """
        self.policy = policy or SessionPolicy()
        self.rng = rng or random.Random()

    def shuffle(self, words: list[Word]) -> list[Word]:
        """Shuffle into a new list."""
        shuffled = list(words)
        self.rng.shuffle(shuffled)
        return shuffled

    def partition(self, pool: list[Word]) -> Buckets:
        buckets = Buckets()
        for word in pool:
            if word.status == WordStatus.LEARNED:
                buckets.learned.append(word)
            elif word.status == WordStatus.NEEDS_REVIEW:
                buckets.needs_review.append(word)
            else:
                buckets.new.append(word)
        return buckets

    def _draw(self, bucket: list[Word], count: int, now: int) -> list[Word]:
        """Take `count` words from a prioritized bucket."""
        if count <= 0:
            return []
        ordered = prioritize(bucket, now)
        if self.policy.bucket_ordering is OrderingPolicy.SHUFFLED:
            ordered = self.shuffle(ordered)
        return ordered[:count]

    def _compose_normal(self, buckets: Buckets, now: int) -> list[Word]:
        max_size = self.policy.max_size

        if buckets.new:
            total = len(buckets.new) + len(buckets.needs_review) + len(buckets.learned)
            size = min(max_size, total)
            new_count = ratio_count(size, self.policy.new_ratio)
            review_count = min(ratio_count(size, self.policy.review_ratio), size - new_count)
            learned_count = size - new_count - review_count
            logger.debug(
                f"Normal session: size={size} new={new_count} "
                f"review={review_count} learned={learned_count}"
            )
            return [
                *self._draw(buckets.new, new_count, now),
                *self._draw(buckets.needs_review, review_count, now),
                *self._draw(buckets.learned, learned_count, now),
            ]

        if buckets.needs_review:
            size = min(max_size, len(buckets.needs_review) + len(buckets.learned))
            review_count = ratio_count(size, self.policy.fallback_review_ratio)
            learned_count = size - review_count
            logger.debug(
                f"Normal session (no new words): size={size} "
                f"review={review_count} learned={learned_count}"
            )
            return [
                *self._draw(buckets.needs_review, review_count, now),
                *self._draw(buckets.learned, learned_count, now),
            ]

        return self._draw(buckets.learned, max_size, now)

    def compose(self, pool: list[Word], mode: SessionMode | str, now: int) -> list[Word]:
        """
        Build a session from a word pool.

        Args:
            pool: Every word the session may draw from
            mode: Session mode
            now: Current time in epoch milliseconds

        Returns:
            Ordered words, possibly empty; the caller reports "no words"
        """
        mode = SessionMode(mode)
        buckets = self.partition(pool)

        if mode is SessionMode.NORMAL:
            selected = self._compose_normal(buckets, now)
        elif mode is SessionMode.UNSEEN:
            selected = self.shuffle(buckets.new)
        else:
            selected = prioritize(buckets.learned, now)

        if self.policy.final_ordering.get(mode, OrderingPolicy.SHUFFLED) is OrderingPolicy.SHUFFLED:
            selected = self.shuffle(selected)

        logger.debug(f"Composed {mode.value} session with {len(selected)} of {len(pool)} words")
        return selected


# =============================================================================
# Answer Recording
# =============================================================================


def record_answer(
    word: Word,
    is_correct: bool,
    now: int,
    scheduler: SM2Scheduler | None = None,
) -> Word:
    """
    Apply an answer to a word the way a study session does.

    Bumps the practice count (correct answers only), stores the last
    result and update time, then reschedules with SM-2.
    """
    answered = replace(
        word,
        practiced_count=word.practiced_count + 1 if is_correct else word.practiced_count,
        last_result="correct" if is_correct else "incorrect",
        updated_at=now,
    )
    return (scheduler or SM2Scheduler()).review(answered, is_correct, now)


@dataclass(frozen=True)
class Score:
    score: int
    percentage: int


def calculate_score(correct_count: int, total_count: int) -> Score:
    """Score a finished session; percentage is rounded half-up."""
    percentage = round_half_up(correct_count / total_count * 100) if total_count > 0 else 0
    return Score(score=correct_count, percentage=percentage)


@dataclass
class StudySession:
    """A running study session."""

    mode: SessionMode
    words: list[Word]
    started_at: int
    folder_id: str | None = None
    current_index: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    incorrect_words: list[Word] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.current_index >= len(self.words)

    @property
    def current(self) -> Word | None:
        if self.is_complete:
            return None
        return self.words[self.current_index]

    @property
    def total(self) -> int:
        return len(self.words)

    def answer(
        self,
        is_correct: bool,
        now: int,
        scheduler: SM2Scheduler | None = None,
    ) -> Word:
        """
        Answer the current word and advance.

        Returns:
            The rescheduled word, for the caller to persist
        """
        word = self.current
        if word is None:
            raise IndexError("Session is already complete")

        updated = record_answer(word, is_correct, now, scheduler)
        self.words = [*self.words[: self.current_index], updated, *self.words[self.current_index + 1 :]]

        if is_correct:
            self.correct_count += 1
        else:
            self.incorrect_count += 1
            self.incorrect_words = [*self.incorrect_words, updated]

        self.current_index += 1
        return updated

    def score(self) -> Score:
        return calculate_score(self.correct_count, self.correct_count + self.incorrect_count)
