"""
SQLite Word Store.

Provides portable persistence for:
- Folders and the words they contain
- Scheduling state per word (nullable for legacy rows)
- Review history log
- Session history

Every bulk read passes through the guardian before words leave the
store, so callers only ever see schedulable words. Default database
location: ~/.recall/words.db (see RECALL_DB_PATH).
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .guardian import migrate_batch
from .scheduler import due_count
from .word import Uninitialized, Word, now_ms

# =============================================================================
# Data Classes
# =============================================================================


class WordNotFoundError(KeyError):
    """Raised when a word id does not exist in the store."""


@dataclass
class Folder:
    """A named group of words."""

    id: str
    name: str
    created_at: int
    updated_at: int
    word_count: int = 0


@dataclass
class SessionRecord:
    """A study session summary."""

    id: int
    mode: str
    folder_id: str | None
    started_at: int
    ended_at: int | None
    words_reviewed: int
    accuracy: float


# Column name -> persisted dict key
_WORD_COLUMNS = {
    "id": "id",
    "folder_id": "folderId",
    "front": "front",
    "back": "back",
    "reading": "reading",
    "status": "status",
    "practiced_count": "practicedCount",
    "last_result": "lastResult",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "sr_ease_factor": "srEaseFactor",
    "sr_interval": "srInterval",
    "sr_due_date": "srDueDate",
    "sr_repetitions": "srRepetitions",
    "sr_last_reviewed": "srLastReviewed",
}

_SR_COLUMNS = frozenset(column for column in _WORD_COLUMNS if column.startswith("sr_"))

_EDITABLE_FIELDS = frozenset({"front", "back", "reading", "folder_id"})


# =============================================================================
# Word Store
# =============================================================================


class WordStore:
    """
    SQLite-backed persistence for words and study history.

    Last writer wins; a single user on a single device is assumed.
    """

    DEFAULT_DB_PATH = Path.home() / ".recall" / "words.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the word store.

        Args:
            db_path: Custom database path (defaults to ~/.recall/words.db)
        """
        self.db_path = Path(db_path or self.DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"WordStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS folders (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

        # Scheduling columns stay NULL until the word is first initialized.
        # Values are stored as JSON text so corrupt legacy data reaches the
        # guardian exactly as it was written.
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS words (
                id TEXT PRIMARY KEY,
                folder_id TEXT,
                front TEXT NOT NULL,
                back TEXT NOT NULL,
                reading TEXT,
                status TEXT DEFAULT 'new',
                practiced_count INTEGER DEFAULT 0,
                last_result TEXT,
                created_at INTEGER,
                updated_at INTEGER,
                sr_ease_factor TEXT,
                sr_interval TEXT,
                sr_due_date TEXT,
                sr_repetitions TEXT,
                sr_last_reviewed TEXT,
                extra TEXT,
                FOREIGN KEY (folder_id) REFERENCES folders(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS review_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                word_id TEXT NOT NULL,
                reviewed_at INTEGER NOT NULL,
                correct BOOLEAN NOT NULL,
                interval_days INTEGER,
                FOREIGN KEY (word_id) REFERENCES words(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS session_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                mode TEXT NOT NULL,
                folder_id TEXT,
                started_at INTEGER NOT NULL,
                ended_at INTEGER,
                words_reviewed INTEGER DEFAULT 0,
                accuracy REAL DEFAULT 0.0
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_words_folder
            ON words(folder_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_review_log_word
            ON review_log(word_id)
        """)

        self.conn.commit()

    # =========================================================================
    # Row Mapping
    # =========================================================================

    @staticmethod
    def _row_to_word(row: sqlite3.Row) -> Word:
        data = json.loads(row["extra"]) if row["extra"] else {}
        for column, key in _WORD_COLUMNS.items():
            if row[column] is None:
                continue
            data[key] = json.loads(row[column]) if column in _SR_COLUMNS else row[column]
        return Word.from_dict(data)

    @staticmethod
    def _word_to_params(word: Word) -> dict:
        data = word.to_dict()
        params = {column: data.get(key) for column, key in _WORD_COLUMNS.items()}
        for column in _SR_COLUMNS:
            if params[column] is not None:
                params[column] = json.dumps(params[column])
        extra = {key: value for key, value in data.items() if key not in _WORD_COLUMNS.values()}
        params["extra"] = json.dumps(extra, ensure_ascii=False) if extra else None
        return params

    # =========================================================================
    # Folder Operations
    # =========================================================================

    def add_folder(self, name: str, now: int | None = None) -> Folder:
        """Create a folder and return it."""
        now = now_ms() if now is None else now
        folder = Folder(id=uuid.uuid4().hex, name=name, created_at=now, updated_at=now)
        self.conn.execute(
            "INSERT INTO folders (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (folder.id, folder.name, folder.created_at, folder.updated_at),
        )
        self.conn.commit()
        logger.debug(f"Created folder {folder.name} ({folder.id})")
        return folder

    def get_folders(self) -> list[Folder]:
        cursor = self.conn.cursor()
        cursor.execute("""
            SELECT f.*, COUNT(w.id) AS word_count
            FROM folders f LEFT JOIN words w ON w.folder_id = f.id
            GROUP BY f.id
            ORDER BY f.created_at ASC
        """)
        return [
            Folder(
                id=row["id"],
                name=row["name"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
                word_count=row["word_count"],
            )
            for row in cursor.fetchall()
        ]

    def find_folder(self, name_or_id: str) -> Folder | None:
        """Look a folder up by id or by name."""
        for folder in self.get_folders():
            if name_or_id in (folder.id, folder.name):
                return folder
        return None

    def delete_folder(self, folder_id: str) -> int:
        """
        Delete a folder together with its words.

        Returns:
            Number of words deleted
        """
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM words WHERE folder_id = ?", (folder_id,))
        deleted = cursor.rowcount
        cursor.execute("DELETE FROM folders WHERE id = ?", (folder_id,))
        self.conn.commit()
        return deleted

    # =========================================================================
    # Word Operations
    # =========================================================================

    def add_word(
        self,
        front: str,
        back: str,
        reading: str | None = None,
        folder_id: str | None = None,
        now: int | None = None,
    ) -> Word:
        """
        Create a new word.

        The schedule starts Uninitialized; the guardian fills it on the
        first read or answer.
        """
        now = now_ms() if now is None else now
        word = Word(
            id=uuid.uuid4().hex,
            front=front,
            back=back,
            reading=reading,
            folder_id=folder_id,
            created_at=now,
            updated_at=now,
            schedule=Uninitialized(),
        )
        self.save_word(word)
        return word

    def save_word(self, word: Word) -> None:
        """
        Save or update a single word by id.

        Args:
            word: Word to persist
        """
        params = self._word_to_params(word)
        columns = list(params)
        updates = ", ".join(f"{column} = excluded.{column}" for column in columns if column != "id")
        self.conn.execute(
            f"""
            INSERT INTO words ({", ".join(columns)})
            VALUES ({", ".join(f":{column}" for column in columns)})
            ON CONFLICT(id) DO UPDATE SET {updates}
        """,
            params,
        )
        self.conn.commit()

    def save_words(self, words: list[Word]) -> None:
        for word in words:
            self.save_word(word)

    def get_word(self, word_id: str, now: int | None = None) -> Word:
        """
        Get a single word, normalized.

        Raises:
            WordNotFoundError: If no word has this id
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM words WHERE id = ?", (word_id,))
        row = cursor.fetchone()
        if row is None:
            raise WordNotFoundError(word_id)
        return migrate_batch([self._row_to_word(row)], now_ms() if now is None else now)[0]

    def get_words(self, folder_id: str | None = None, now: int | None = None) -> list[Word]:
        """
        Get all words (optionally of one folder), normalized.

        Args:
            folder_id: Restrict to this folder
            now: Timestamp shared by the whole batch

        Returns:
            Words in insertion order
        """
        cursor = self.conn.cursor()
        if folder_id is None:
            cursor.execute("SELECT * FROM words ORDER BY rowid ASC")
        else:
            cursor.execute(
                "SELECT * FROM words WHERE folder_id = ? ORDER BY rowid ASC", (folder_id,)
            )
        words = [self._row_to_word(row) for row in cursor.fetchall()]
        return migrate_batch(words, now_ms() if now is None else now)

    def update_word(self, word_id: str, **changes) -> Word:
        """
        Update content fields of a word.

        Raises:
            WordNotFoundError: If no word has this id
            ValueError: If a change names a non-content field
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit fields: {sorted(unknown)}")
        word = self.get_word(word_id)
        for name, value in changes.items():
            setattr(word, name, value)
        word.updated_at = now_ms()
        self.save_word(word)
        return word

    def delete_word(self, word_id: str) -> None:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM words WHERE id = ?", (word_id,))
        if cursor.rowcount == 0:
            raise WordNotFoundError(word_id)
        self.conn.commit()

    def count_legacy_words(self) -> int:
        """Count rows whose scheduling state was never initialized."""
        cursor = self.conn.cursor()
        cursor.execute("""
            SELECT COUNT(*) AS cnt FROM words
            WHERE sr_ease_factor IS NULL OR sr_interval IS NULL OR sr_due_date IS NULL
        """)
        return cursor.fetchone()["cnt"]

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def log_review(self, word: Word, is_correct: bool, now: int | None = None) -> int:
        """
        Log an answered word.

        Returns:
            Review record ID
        """
        interval = word.schedule.interval if word.is_initialized else None
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO review_log (word_id, reviewed_at, correct, interval_days)
            VALUES (?, ?, ?, ?)
        """,
            (word.id, now_ms() if now is None else now, is_correct, interval),
        )
        self.conn.commit()
        return cursor.lastrowid

    # =========================================================================
    # Session Operations
    # =========================================================================

    def start_session(self, mode: str, folder_id: str | None = None, now: int | None = None) -> int:
        """
        Start a new study session.

        Returns:
            Session ID
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO session_history (mode, folder_id, started_at, words_reviewed, accuracy)
            VALUES (?, ?, ?, 0, 0.0)
        """,
            (mode, folder_id, now_ms() if now is None else now),
        )
        self.conn.commit()
        return cursor.lastrowid

    def end_session(
        self,
        session_id: int,
        words_reviewed: int,
        accuracy: float,
        now: int | None = None,
    ) -> None:
        """
        End a study session with summary stats.

        Args:
            session_id: The session to close
            words_reviewed: Total words answered
            accuracy: Fraction of correct answers
        """
        self.conn.execute(
            """
            UPDATE session_history SET
                ended_at = ?,
                words_reviewed = ?,
                accuracy = ?
            WHERE id = ?
        """,
            (now_ms() if now is None else now, words_reviewed, accuracy, session_id),
        )
        self.conn.commit()

    def get_session_history(self, limit: int = 10) -> list[SessionRecord]:
        """Get recent sessions, most recent first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM session_history
            ORDER BY started_at DESC, id DESC
            LIMIT ?
        """,
            (limit,),
        )
        return [
            SessionRecord(
                id=row["id"],
                mode=row["mode"],
                folder_id=row["folder_id"],
                started_at=row["started_at"],
                ended_at=row["ended_at"],
                words_reviewed=row["words_reviewed"],
                accuracy=row["accuracy"],
            )
            for row in cursor.fetchall()
        ]

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self, folder_id: str | None = None, now: int | None = None) -> dict:
        """
        Get learning statistics.

        Returns:
            Dictionary with word counts by status, due count and review totals
        """
        now = now_ms() if now is None else now
        words = self.get_words(folder_id, now=now)

        by_status = {"new": 0, "learned": 0, "needs_review": 0}
        for word in words:
            by_status[word.status.value] += 1

        cursor = self.conn.cursor()
        if folder_id is None:
            cursor.execute("SELECT COUNT(*) AS total, SUM(correct) AS correct FROM review_log")
        else:
            cursor.execute(
                """
                SELECT COUNT(*) AS total, SUM(r.correct) AS correct
                FROM review_log r
                JOIN words w ON w.id = r.word_id
                WHERE w.folder_id = ?
            """,
                (folder_id,),
            )
        row = cursor.fetchone()
        total_reviews = row["total"] or 0
        correct_reviews = row["correct"] or 0

        sessions_query = "SELECT COUNT(*) AS cnt FROM session_history WHERE ended_at IS NOT NULL"
        if folder_id is None:
            cursor.execute(sessions_query)
        else:
            cursor.execute(sessions_query + " AND folder_id = ?", (folder_id,))
        sessions_completed = cursor.fetchone()["cnt"]

        return {
            "total_words": len(words),
            "by_status": by_status,
            "words_due": due_count(words, now),
            "total_reviews": total_reviews,
            "retention_rate_percent": (
                correct_reviews / total_reviews * 100 if total_reviews else 0.0
            ),
            "sessions_completed": sessions_completed,
        }

    # =========================================================================
    # Import / Export
    # =========================================================================

    def export_json(self, path: Path) -> int:
        """
        Write every word (and folder) to a JSON file.

        Returns:
            Number of words written
        """
        words = self.get_words()
        payload = {
            "folders": [
                {
                    "id": folder.id,
                    "name": folder.name,
                    "createdAt": folder.created_at,
                    "updatedAt": folder.updated_at,
                }
                for folder in self.get_folders()
            ],
            "words": [word.to_dict() for word in words],
        }
        Path(path).write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"Exported {len(words)} words to {path}")
        return len(words)

    def import_json(self, path: Path) -> int:
        """
        Load words from a JSON export (or a bare list of word dicts).

        Existing ids are overwritten. Legacy scheduling fields are kept
        as they are; they get repaired on the next read.

        Returns:
            Number of words imported
        """
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(payload, list):
            payload = {"folders": [], "words": payload}

        for folder in payload.get("folders", []):
            self.conn.execute(
                """
                INSERT INTO folders (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name, updated_at = excluded.updated_at
            """,
                (folder["id"], folder["name"], folder.get("createdAt", 0), folder.get("updatedAt", 0)),
            )
        self.conn.commit()

        words = [Word.from_dict(data) for data in payload.get("words", [])]
        self.save_words(words)
        logger.info(f"Imported {len(words)} words from {path}")
        return len(words)

    def clear_all(self) -> None:
        """Remove every folder, word and history row."""
        cursor = self.conn.cursor()
        for table in ("review_log", "session_history", "words", "folders"):
            cursor.execute(f"DELETE FROM {table}")
        self.conn.commit()
        logger.warning("All stored words and history cleared")


