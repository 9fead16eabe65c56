"""
Unit tests for the SR field guardian.

Covers:
- Lazy initialization of legacy words
- Repair of every out-of-range scheduling field
- Batch migration (order, idempotency)
"""

import math

import pytest

from src.recall.guardian import (
    MAX_FUTURE_MS,
    ensure_initialized,
    migrate_batch,
    validate,
)
from src.recall.word import DAY_MS, SchedulingState, Uninitialized


class TestEnsureInitialized:
    def test_legacy_word_gets_defaults(self, make_word, now):
        word = ensure_initialized(make_word(), now)

        assert word.schedule == SchedulingState(
            ease_factor=2.5, interval=1, due_date=now, repetitions=0, last_reviewed=None
        )

    def test_partial_fields_are_kept(self, make_word, now):
        word = make_word(schedule=Uninitialized({"interval": 6, "repetitions": 3}))

        state = ensure_initialized(word, now).schedule

        assert state.interval == 6
        assert state.repetitions == 3
        assert state.ease_factor == 2.5
        assert state.due_date == now

    def test_initialized_word_passes_through(self, make_word, now):
        word = make_word(ease_factor=2.3, interval=3, due_date=now + DAY_MS, repetitions=1)

        assert ensure_initialized(word, now) is word

    def test_does_not_touch_content(self, make_word, now):
        word = make_word(front="猫", back="cat", practiced_count=4)

        initialized = ensure_initialized(word, now)

        assert (initialized.front, initialized.back, initialized.practiced_count) == ("猫", "cat", 4)


class TestValidate:
    def test_valid_word_is_unchanged(self, make_word, now):
        word = make_word(ease_factor=2.1, interval=12, due_date=now + 3 * DAY_MS, repetitions=4, last_reviewed=now)

        assert validate(word, now) is word

    @pytest.mark.parametrize("ease", [0.5, 1.29, "fast", None, math.nan, True])
    def test_bad_ease_factor_resets_to_default(self, make_word, now, ease):
        state = validate(make_word(ease_factor=ease, interval=3), now).schedule

        assert state.ease_factor == 2.5

    def test_minimum_ease_factor_is_valid(self, make_word, now):
        assert validate(make_word(ease_factor=1.3, interval=3), now).schedule.ease_factor == 1.3

    @pytest.mark.parametrize("interval", [0, -4, "3", None, math.inf])
    def test_bad_interval_resets_to_one(self, make_word, now, interval):
        assert validate(make_word(interval=interval), now).schedule.interval == 1

    def test_interval_capped_at_365(self, make_word, now):
        assert validate(make_word(interval=1000), now).schedule.interval == 365

    def test_fractional_interval_rounded(self, make_word, now):
        assert validate(make_word(interval=2.5), now).schedule.interval == 3

    @pytest.mark.parametrize("due_date", [-1, "tomorrow", None])
    def test_bad_due_date_resets_to_now(self, make_word, now, due_date):
        word = make_word(schedule=SchedulingState(due_date=due_date, interval=4))

        assert validate(word, now).schedule.due_date == now

    def test_far_future_due_date_recomputed_from_interval(self, make_word, now):
        word = make_word(interval=7, due_date=now + MAX_FUTURE_MS + DAY_MS)

        assert validate(word, now).schedule.due_date == now + 7 * DAY_MS

    def test_due_date_exactly_five_years_out_is_kept(self, make_word, now):
        word = make_word(interval=7, due_date=now + MAX_FUTURE_MS)

        assert validate(word, now).schedule.due_date == now + MAX_FUTURE_MS

    @pytest.mark.parametrize("repetitions", [-1, "two", None])
    def test_bad_repetitions_reset_to_zero(self, make_word, now, repetitions):
        assert validate(make_word(interval=3, repetitions=repetitions), now).schedule.repetitions == 0

    @pytest.mark.parametrize("last_reviewed", [-5, "yesterday"])
    def test_bad_last_reviewed_cleared(self, make_word, now, last_reviewed):
        word = make_word(interval=3, last_reviewed=last_reviewed)

        assert validate(word, now).schedule.last_reviewed is None

    def test_validates_legacy_word(self, make_word, now):
        word = make_word(schedule=Uninitialized({"ease_factor": 0.2, "interval": 900}))

        state = validate(word, now).schedule

        assert state.ease_factor == 2.5
        assert state.interval == 365

    @pytest.mark.parametrize(
        "partial",
        [
            {},
            {"ease_factor": -3, "interval": 0, "due_date": -100, "repetitions": -2, "last_reviewed": -1},
            {"ease_factor": "x", "interval": "y", "due_date": "z", "repetitions": "r"},
            {"ease_factor": 9.9, "interval": 10_000, "due_date": 10**18},
        ],
    )
    def test_invariants_always_hold(self, make_word, now, partial):
        state = validate(make_word(schedule=Uninitialized(partial)), now).schedule

        assert state.ease_factor >= 1.3
        assert 1 <= state.interval <= 365
        assert 0 <= state.due_date <= now + MAX_FUTURE_MS
        assert state.repetitions >= 0


class TestMigrateBatch:
    def test_preserves_order_and_length(self, make_word, now):
        words = [make_word(id=f"w{i}") for i in range(5)]

        migrated = migrate_batch(words, now)

        assert [w.id for w in migrated] == ["w0", "w1", "w2", "w3", "w4"]
        assert all(w.is_initialized for w in migrated)

    def test_does_not_mutate_input(self, make_word, now):
        words = [make_word()]

        migrate_batch(words, now)

        assert isinstance(words[0].schedule, Uninitialized)

    def test_second_pass_is_a_fixed_point(self, make_word, now):
        words = [
            make_word(),
            make_word(ease_factor=0.1, interval=999, due_date=-1, repetitions=-3),
            make_word(ease_factor=2.2, interval=5, due_date=now + 2 * DAY_MS, repetitions=2),
        ]

        once = migrate_batch(words, now)
        twice = migrate_batch(once, now)

        assert twice == once

    def test_empty_batch(self, now):
        assert migrate_batch([], now) == []
