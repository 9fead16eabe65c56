"""
SM-2 Spaced Repetition Scheduler.

Implements:
- SM-2 algorithm for review intervals and ease factors
- Due-date priority ordering (overdue first)
- Due helpers for statistics displays

The UI only records correct/incorrect, so the SM-2 grade scale is
collapsed to two buckets:
4 - Correct
0 - Incorrect (complete blackout)

All functions take the current time explicitly (epoch milliseconds).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from loguru import logger

from .guardian import (
    INITIAL_INTERVAL_DAYS,
    MAX_INTERVAL_DAYS,
    MIN_EASE_FACTOR,
    validate,
)
from .word import DAY_MS, SchedulingState, Word, WordStatus

# =============================================================================
# SM-2 Algorithm
# =============================================================================


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (7.5 -> 8)."""
    return math.floor(value + 0.5)


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    minimum_ease: float = MIN_EASE_FACTOR
    first_interval: int = INITIAL_INTERVAL_DAYS  # Days after first correct answer
    second_interval: int = 3  # Days after second correct answer
    max_interval: int = MAX_INTERVAL_DAYS
    lapse_penalty: float = 0.2
    correct_quality: int = 4
    incorrect_quality: int = 0


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each word has:
    - Ease Factor (EF): How fast intervals grow (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive correct recalls since the last lapse
    """

    def __init__(self, config: SM2Config | None = None):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SM2Config()

    def quality_from_answer(self, is_correct: bool) -> int:
        """Map a correct/incorrect answer to an SM-2 quality score."""
        return self.config.correct_quality if is_correct else self.config.incorrect_quality

    def calculate(self, state: SchedulingState, quality: int) -> SchedulingState:
        """
        Apply one SM-2 step to a validated state.

        Due date and last-reviewed time are left untouched; `review`
        stamps them.

        Args:
            state: Current scheduling state
            quality: SM-2 quality (0-5)

        Returns:
            SchedulingState with new ease factor, interval and repetitions
        """
        if quality < 3:
            # Failed - reset progress
            new_repetitions = 0
            new_interval = self.config.first_interval
            new_ease = max(self.config.minimum_ease, state.ease_factor - self.config.lapse_penalty)
        else:
            # Passed - advance
            new_repetitions = state.repetitions + 1

            if new_repetitions == 1:
                new_interval = self.config.first_interval
            elif new_repetitions == 2:
                new_interval = self.config.second_interval
            else:
                new_interval = round_half_up(state.interval * state.ease_factor)

            # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
            ef_delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
            new_ease = max(self.config.minimum_ease, state.ease_factor + ef_delta)

        new_interval = min(new_interval, self.config.max_interval)

        return replace(
            state,
            ease_factor=new_ease,
            interval=new_interval,
            repetitions=new_repetitions,
        )

    def review(self, word: Word, is_correct: bool, now: int) -> Word:
        """
        Calculate the next review for a word after an answer.

        Only the schedule and the derived status change; content and
        practice counters are the caller's business.

        Args:
            word: The answered word (legacy/corrupt state is normalized first)
            is_correct: Whether the answer was correct
            now: Answer time in epoch milliseconds

        Returns:
            Updated Word
        """
        word = validate(word, now)
        quality = self.quality_from_answer(is_correct)
        stepped = self.calculate(word.schedule, quality)

        new_state = replace(
            stepped,
            due_date=now + stepped.interval * DAY_MS,
            last_reviewed=now,
        )

        logger.debug(
            f"Reviewed {word.id}: quality={quality}, interval={new_state.interval}d, "
            f"ease={new_state.ease_factor:.2f}, reps={new_state.repetitions}"
        )

        return replace(
            word,
            schedule=new_state,
            status=WordStatus.LEARNED if is_correct else WordStatus.NEEDS_REVIEW,
        )


# =============================================================================
# Priority Ordering
# =============================================================================


def prioritize(words: list[Word], now: int) -> list[Word]:
    """
    Order words by due date, most overdue first.

    Words are normalized first, so one never assigned a due date sorts
    as due `now`. The sort is stable: words sharing a due date keep
    their input order.
    """
    validated = [validate(word, now) for word in words]
    return sorted(validated, key=lambda word: word.schedule.due_date)


# =============================================================================
# Due Helpers
# =============================================================================


def is_due(word: Word, now: int) -> bool:
    """Check if a word is due for review."""
    return validate(word, now).schedule.due_date <= now


def due_words(words: list[Word], now: int) -> list[Word]:
    """Filter words that are due for review."""
    return [word for word in words if is_due(word, now)]


def due_count(words: list[Word], now: int) -> int:
    """Count how many words are due for review."""
    return len(due_words(words, now))
