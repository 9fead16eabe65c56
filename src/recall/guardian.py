"""
SR Field Guardian.

Keeps every word's spaced repetition state inside its invariants:
- ease factor >= 1.3
- 1 <= interval <= 365 days
- 0 <= due date <= now + 5 years
- repetitions >= 0

Legacy words without a schedule are initialized lazily, corrupt values
are coerced back to safe defaults. Nothing here raises; every input
produces a schedulable word.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any

from loguru import logger

from .word import DAY_MS, SchedulingState, Uninitialized, Word

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
INITIAL_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 365
MAX_FUTURE_MS = 5 * 365 * DAY_MS


def _is_number(value: Any) -> bool:
    """True for finite ints/floats (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def ensure_initialized(word: Word, now: int) -> Word:
    """
    Give a legacy word a full SchedulingState.

    Fields the legacy record already carries are kept (and repaired later
    by validate); absent ones get defaults. Initialized words are
    returned unchanged.

    Args:
        word: Word to initialize
        now: Current time in epoch milliseconds

    Returns:
        Word whose schedule is a SchedulingState
    """
    if not isinstance(word.schedule, Uninitialized):
        return word

    partial = word.schedule.partial
    state = SchedulingState(
        ease_factor=partial.get("ease_factor", DEFAULT_EASE_FACTOR),
        interval=partial.get("interval", INITIAL_INTERVAL_DAYS),
        due_date=partial.get("due_date", now),
        repetitions=partial.get("repetitions", 0),
        last_reviewed=partial.get("last_reviewed"),
    )
    logger.debug(f"Initialized schedule for word {word.id}")
    return replace(word, schedule=state)


def validate(word: Word, now: int) -> Word:
    """
    Repair out-of-range scheduling values.

    Args:
        word: Word to validate (initialized first if needed)
        now: Current time in epoch milliseconds

    Returns:
        Word with a schedule satisfying every invariant
    """
    word = ensure_initialized(word, now)
    state = word.schedule
    repaired: list[str] = []

    ease = state.ease_factor
    if not _is_number(ease) or ease < MIN_EASE_FACTOR:
        ease = DEFAULT_EASE_FACTOR
        repaired.append("ease_factor")

    interval = state.interval
    if not _is_number(interval) or interval < 1:
        interval = INITIAL_INTERVAL_DAYS
        repaired.append("interval")
    elif interval > MAX_INTERVAL_DAYS:
        interval = MAX_INTERVAL_DAYS
        repaired.append("interval")
    elif interval != int(interval):
        interval = math.floor(interval + 0.5)
        repaired.append("interval")
    interval = int(interval)

    due_date = state.due_date
    if not _is_number(due_date) or due_date < 0:
        due_date = now
        repaired.append("due_date")
    elif due_date > now + MAX_FUTURE_MS:
        due_date = now + interval * DAY_MS
        repaired.append("due_date")
    due_date = int(due_date)

    repetitions = state.repetitions
    if not _is_number(repetitions) or repetitions < 0:
        repetitions = 0
        repaired.append("repetitions")
    repetitions = int(repetitions)

    last_reviewed = state.last_reviewed
    if last_reviewed is not None and (not _is_number(last_reviewed) or last_reviewed < 0):
        last_reviewed = None
        repaired.append("last_reviewed")
    if last_reviewed is not None:
        last_reviewed = int(last_reviewed)

    if not repaired:
        return word

    logger.debug(f"Repaired {', '.join(repaired)} for word {word.id}")
    return replace(
        word,
        schedule=SchedulingState(
            ease_factor=float(ease),
            interval=interval,
            due_date=due_date,
            repetitions=repetitions,
            last_reviewed=last_reviewed,
        ),
    )


def migrate_batch(words: list[Word], now: int) -> list[Word]:
    """
    Initialize and validate a whole collection.

    Pure and order preserving; the caller persists the result. A fixed
    `now` makes a second pass a no-op.
    """
    migrated = [validate(ensure_initialized(word, now), now) for word in words]

    changed = sum(1 for before, after in zip(words, migrated) if before is not after)
    if changed:
        logger.info(f"Migrated scheduling state for {changed}/{len(words)} words")

    return migrated
