"""
Word: Vocabulary Item Model.

A word is the learnable unit the scheduler works on. It carries opaque
content (front/back/reading), a coarse status mirroring the most recent
answer, and a spaced repetition schedule.

The schedule is a sum type:
- SchedulingState: fully populated, safe to feed into SM-2
- Uninitialized: legacy/partial fields exactly as they were persisted

Timestamps are integer epoch milliseconds so records round-trip through
JSON and SQLite without loss.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

DAY_MS = 24 * 60 * 60 * 1000

# Persisted key -> SchedulingState attribute
SR_KEYS = {
    "srEaseFactor": "ease_factor",
    "srInterval": "interval",
    "srDueDate": "due_date",
    "srRepetitions": "repetitions",
    "srLastReviewed": "last_reviewed",
}

# Keys that must all be present for a persisted schedule to count as initialized
REQUIRED_SR_KEYS = ("srEaseFactor", "srInterval", "srDueDate")

_KNOWN_KEYS = {
    "id",
    "front",
    "back",
    "reading",
    "chinese",
    "english",
    "pinyin",
    "folderId",
    "status",
    "practicedCount",
    "lastResult",
    "createdAt",
    "updatedAt",
    *SR_KEYS,
}


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Status
# =============================================================================


class WordStatus(str, Enum):
    """Outcome of the most recent answer."""

    NEW = "new"
    LEARNED = "learned"
    NEEDS_REVIEW = "needs_review"

    @classmethod
    def parse(cls, value: Any) -> WordStatus:
        """Parse a persisted status, accepting legacy colour codes."""
        if isinstance(value, WordStatus):
            return value
        if not isinstance(value, str):
            return cls.NEW
        legacy = {"white": cls.NEW, "green": cls.LEARNED, "red": cls.NEEDS_REVIEW}
        if value in legacy:
            return legacy[value]
        try:
            return cls(value)
        except ValueError:
            return cls.NEW


# =============================================================================
# Schedule
# =============================================================================


@dataclass(frozen=True)
class SchedulingState:
    """SM-2 scheduling state for a single word."""

    due_date: int
    ease_factor: float = 2.5
    interval: int = 1  # Days until next review
    repetitions: int = 0  # Consecutive correct answers since last lapse
    last_reviewed: int | None = None

    def to_dict(self) -> dict:
        data = {
            "srEaseFactor": self.ease_factor,
            "srInterval": self.interval,
            "srDueDate": self.due_date,
        }
        # Optional keys are only written when set
        if self.repetitions is not None:
            data["srRepetitions"] = self.repetitions
        if self.last_reviewed is not None:
            data["srLastReviewed"] = self.last_reviewed
        return data


@dataclass(frozen=True)
class Uninitialized:
    """
    Scheduling fields of a legacy word that was never fully initialized.

    Holds whatever subset of the schedule was persisted, keyed by
    SchedulingState attribute name, with values left unvalidated.
    """

    partial: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        reverse = {attr: key for key, attr in SR_KEYS.items()}
        return {reverse[attr]: value for attr, value in self.partial.items()}


Schedule = Union[SchedulingState, Uninitialized]


# =============================================================================
# Word
# =============================================================================


@dataclass
class Word:
    """A vocabulary word with content, status and schedule."""

    id: str
    front: str
    back: str
    reading: str | None = None
    folder_id: str | None = None
    status: WordStatus = WordStatus.NEW
    practiced_count: int = 0
    last_result: str | None = None  # "correct" | "incorrect" | None
    created_at: int = 0
    updated_at: int = 0
    schedule: Schedule = field(default_factory=Uninitialized)

    # Persisted keys the scheduler does not interpret (etymology, part of speech, ...)
    extra: dict = field(default_factory=dict)

    @property
    def is_initialized(self) -> bool:
        return isinstance(self.schedule, SchedulingState)

    @classmethod
    def from_dict(cls, data: dict) -> Word:
        """
        Create a Word from its persisted dictionary form.

        Missing any of srEaseFactor/srInterval/srDueDate yields an
        Uninitialized schedule; scheduling values are never validated
        here, that is the guardian's job.
        """
        sr_values = {attr: data[key] for key, attr in SR_KEYS.items() if key in data}
        if all(data.get(key) is not None for key in REQUIRED_SR_KEYS):
            schedule: Schedule = SchedulingState(
                due_date=sr_values["due_date"],
                ease_factor=sr_values["ease_factor"],
                interval=sr_values["interval"],
                repetitions=sr_values.get("repetitions"),
                last_reviewed=sr_values.get("last_reviewed"),
            )
        else:
            schedule = Uninitialized(
                {attr: value for attr, value in sr_values.items() if value is not None}
            )

        return cls(
            id=str(data["id"]),
            front=data.get("front", data.get("chinese", "")),
            back=data.get("back", data.get("english", "")),
            reading=data.get("reading", data.get("pinyin")),
            folder_id=data.get("folderId"),
            status=WordStatus.parse(data.get("status")),
            practiced_count=data.get("practicedCount") or 0,
            last_result=data.get("lastResult"),
            created_at=data.get("createdAt") or 0,
            updated_at=data.get("updatedAt") or 0,
            schedule=schedule,
            extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
        )

    def to_dict(self) -> dict:
        """Serialize to the persisted camelCase layout."""
        data = {
            **self.extra,
            "id": self.id,
            "front": self.front,
            "back": self.back,
            "reading": self.reading,
            "folderId": self.folder_id,
            "status": self.status.value,
            "practicedCount": self.practiced_count,
            "lastResult": self.last_result,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        data.update(self.schedule.to_dict())
        return data
