"""
Recall: Spaced Repetition Core for Vocabulary Study.

Decides when each word is next due (SM-2) and which words a study
session presents.

Components:
- Word: Word model with Uninitialized | SchedulingState schedule
- guardian: Repairs and initializes scheduling state
- SM2Scheduler: Spaced repetition algorithm
- SessionComposer: Mode-aware session selection
- WordStore: SQLite persistence
- cli: Terminal front end

The module-level functions below are the entry points used by storage
and session orchestration. Each samples the clock at most once per call
when `now` is omitted.
"""

from __future__ import annotations

import random

from .guardian import migrate_batch
from .scheduler import SM2Config, SM2Scheduler, prioritize
from .scheduler import due_count as _due_count
from .scheduler import due_words as _due_words
from .scheduler import is_due as _is_due
from .session import (
    OrderingPolicy,
    SessionComposer,
    SessionMode,
    SessionPolicy,
    StudySession,
    calculate_score,
    record_answer,
)
from .word import DAY_MS, SchedulingState, Uninitialized, Word, WordStatus, now_ms
from .word_store import WordNotFoundError, WordStore


def migrate_legacy_words(words: list[Word], now: int | None = None) -> list[Word]:
    """Normalize scheduling state for every word of a bulk read."""
    return migrate_batch(words, now_ms() if now is None else now)


def review_word(word: Word, is_correct: bool, now: int | None = None) -> Word:
    """Reschedule one answered word."""
    return SM2Scheduler().review(word, is_correct, now_ms() if now is None else now)


def build_session(
    pool: list[Word],
    mode: SessionMode | str,
    now: int | None = None,
    policy: SessionPolicy | None = None,
    rng: random.Random | None = None,
) -> list[Word]:
    """Select and order the words of a new study session."""
    composer = SessionComposer(policy=policy, rng=rng)
    return composer.compose(pool, mode, now_ms() if now is None else now)


def is_due(word: Word, now: int | None = None) -> bool:
    return _is_due(word, now_ms() if now is None else now)


def due_words(words: list[Word], now: int | None = None) -> list[Word]:
    return _due_words(words, now_ms() if now is None else now)


def due_count(words: list[Word], now: int | None = None) -> int:
    return _due_count(words, now_ms() if now is None else now)


__all__ = [
    # Model
    "Word",
    "WordStatus",
    "SchedulingState",
    "Uninitialized",
    "DAY_MS",
    "now_ms",
    # Scheduling
    "SM2Config",
    "SM2Scheduler",
    "prioritize",
    "migrate_legacy_words",
    "review_word",
    "is_due",
    "due_words",
    "due_count",
    # Sessions
    "SessionMode",
    "SessionPolicy",
    "OrderingPolicy",
    "SessionComposer",
    "StudySession",
    "build_session",
    "record_answer",
    "calculate_score",
    # Persistence
    "WordStore",
    "WordNotFoundError",
]
