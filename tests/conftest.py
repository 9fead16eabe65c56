"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.recall.word import SchedulingState, Uninitialized, Word, WordStatus  # noqa: E402

# 2023-11-14 22:13:20 UTC
FIXED_NOW = 1_700_000_000_000


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.path):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.path):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture
def now():
    """A fixed evaluation time in epoch milliseconds."""
    return FIXED_NOW


@pytest.fixture
def make_word():
    """
    Factory for test words.

    Scheduling keyword arguments (ease_factor, interval, due_date,
    repetitions, last_reviewed) build a SchedulingState; without any of
    them the word is a legacy word with no schedule.
    """
    counter = {"n": 0}

    def _make(status=WordStatus.NEW, schedule=None, **overrides):
        counter["n"] += 1
        sr_fields = {
            key: overrides.pop(key)
            for key in ("ease_factor", "interval", "due_date", "repetitions", "last_reviewed")
            if key in overrides
        }
        if schedule is None:
            if sr_fields:
                sr_fields.setdefault("due_date", FIXED_NOW)
                schedule = SchedulingState(**sr_fields)
            else:
                schedule = Uninitialized()
        defaults = dict(
            id=f"word-{counter['n']}",
            front="你好",
            back="hello",
            reading="nǐ hǎo",
            folder_id="folder-1",
            status=status,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
            schedule=schedule,
        )
        defaults.update(overrides)
        return Word(**defaults)

    return _make

