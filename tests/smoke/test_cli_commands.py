"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work against
a throwaway database.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json

import pytest
from typer.testing import CliRunner

from config import get_settings
from src.recall.cli import app
from src.recall.word_store import WordStore

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the CLI at a fresh database and a fixed session seed."""
    db_path = tmp_path / "words.db"
    monkeypatch.setenv("RECALL_DB_PATH", str(db_path))
    monkeypatch.setenv("RECALL_RANDOM_SEED", "11")
    get_settings.cache_clear()
    yield db_path
    get_settings.cache_clear()


def invoke(*args, input=None):
    result = runner.invoke(app, list(args), input=input)
    assert result.exit_code == 0, result.output
    return result


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = invoke("--help")

        assert "study" in result.output
        assert "stats" in result.output

    def test_study_help(self):
        assert "unseen" in invoke("study", "--help").output


class TestWordManagement:
    def test_add_and_list(self):
        invoke("add", "你好", "hello", "--reading", "nǐ hǎo", "--folder", "Greetings")

        listing = invoke("list").output
        assert "你好" in listing
        assert "hello" in listing
        assert "Greetings" in invoke("folders").output

    def test_unknown_folder_fails(self):
        result = runner.invoke(app, ["list", "--folder", "nowhere"])

        assert result.exit_code == 1
        assert "No folder" in result.output

    def test_delete_unknown_word_fails(self):
        result = runner.invoke(app, ["delete", "missing-id"])

        assert result.exit_code == 1

    def test_import_migrate_export(self, tmp_path, isolated_db):
        source = tmp_path / "legacy.json"
        source.write_text(json.dumps([
            {"id": "w1", "chinese": "猫", "english": "cat", "status": "white"},
            {"id": "w2", "chinese": "狗", "english": "dog", "status": "red", "srInterval": 0},
        ]), encoding="utf-8")

        assert "Imported 2" in invoke("import", str(source)).output
        assert "2 without scheduling state" in invoke("migrate").output
        assert WordStore(isolated_db).count_legacy_words() == 0

        target = tmp_path / "export.json"
        invoke("export", str(target))
        exported = json.loads(target.read_text(encoding="utf-8"))
        assert {w["id"] for w in exported["words"]} == {"w1", "w2"}
        assert all(w["srInterval"] >= 1 for w in exported["words"])

    def test_reset(self):
        invoke("add", "一", "one")

        invoke("reset", "--yes")

        assert "一" not in invoke("list").output


class TestStudy:
    def test_empty_session(self):
        result = invoke("study")

        assert "No words to test" in result.output

    def test_unseen_session_records_answers(self, isolated_db):
        invoke("add", "书", "book")
        invoke("add", "笔", "pen")

        result = invoke("study", "--mode", "unseen", input="\ny\n\nn\n")

        assert "Session Complete" in result.output
        assert "50%" in result.output

        store = WordStore(isolated_db)
        statuses = sorted(w.status.value for w in store.get_words())
        assert statuses == ["learned", "needs_review"]
        assert store.get_stats()["total_reviews"] == 2
        assert store.get_session_history()[0].words_reviewed == 2

    def test_preview_and_stats(self):
        invoke("add", "水", "water")

        assert "水" in invoke("preview").output
        stats = invoke("stats").output
        assert "Total words" in stats
        assert "Due now" in stats


class TestEditing:
    def test_edit_word(self, isolated_db):
        invoke("add", "书", "book")
        invoke("migrate")
        [word] = WordStore(isolated_db).get_words()

        invoke("edit", word.id, "--back", "books", "--reading", "shū")

        edited = WordStore(isolated_db).get_word(word.id)
        assert (edited.front, edited.back, edited.reading) == ("书", "books", "shū")
        assert edited.schedule == word.schedule

    def test_edit_moves_to_folder(self, isolated_db):
        invoke("add", "猫", "cat", "--folder", "Animals")
        invoke("add", "狗", "dog")
        dog = next(w for w in WordStore(isolated_db).get_words() if w.front == "狗")

        invoke("edit", dog.id, "--folder", "Animals")

        assert "狗" in invoke("list", "--folder", "Animals").output

    def test_edit_without_changes(self, isolated_db):
        invoke("add", "书", "book")
        [word] = WordStore(isolated_db).get_words()

        assert "Nothing to change" in invoke("edit", word.id).output

    def test_edit_unknown_word_fails(self):
        result = runner.invoke(app, ["edit", "missing-id", "--back", "x"])

        assert result.exit_code == 1
        assert "No word" in result.output

    def test_folder_delete(self, isolated_db):
        invoke("add", "你好", "hello", "--folder", "Greetings")
        invoke("add", "水", "water")

        assert "1 words" in invoke("folder-delete", "Greetings", "--yes").output

        assert "Greetings" not in invoke("folders").output
        assert [w.front for w in WordStore(isolated_db).get_words()] == ["水"]

    def test_folder_delete_unknown_folder_fails(self):
        result = runner.invoke(app, ["folder-delete", "nowhere", "--yes"])

        assert result.exit_code == 1


class TestListing:
    @pytest.fixture
    def imported(self, tmp_path):
        source = tmp_path / "words.json"
        source.write_text(json.dumps([
            {"id": "a", "front": "甲", "back": "first", "status": "learned", "createdAt": 1,
             "practicedCount": 12, "lastResult": "correct"},
            {"id": "b", "front": "乙", "back": "second", "status": "new", "createdAt": 2,
             "practicedCount": 3, "lastResult": None},
            {"id": "c", "front": "丙", "back": "third", "status": "needs_review", "createdAt": 3,
             "practicedCount": 15, "lastResult": "incorrect"},
        ]), encoding="utf-8")
        invoke("import", str(source))

    @staticmethod
    def listed(*args):
        output = invoke("list", *args).output
        found = [(output.index(front), front) for front in ("甲", "乙", "丙") if front in output]
        return [front for _, front in sorted(found)]

    @pytest.mark.parametrize("sort, expected", [
        ("newest", ["丙", "乙", "甲"]),
        ("oldest", ["甲", "乙", "丙"]),
        ("status", ["乙", "丙", "甲"]),
        ("practiced", ["丙", "甲", "乙"]),
    ])
    def test_sort(self, imported, sort, expected):
        assert self.listed("--sort", sort) == expected

    def test_default_is_newest_first(self, imported):
        assert self.listed() == ["丙", "乙", "甲"]

    @pytest.mark.parametrize("status, expected", [
        ("all", ["丙", "乙", "甲"]),
        ("not-studied", ["乙"]),
        ("correct", ["甲"]),
        ("incorrect", ["丙"]),
    ])
    def test_status_filter(self, imported, status, expected):
        assert self.listed("--status", status) == expected
