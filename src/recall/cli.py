"""
Recall: Vocabulary Study CLI.

A Rich terminal interface for spaced repetition study sessions.

Commands:
- recall add       - Add a word
- recall folders   - List folders
- recall folder-delete - Delete a folder and its words
- recall list      - List words with their schedule (sortable, filterable)
- recall edit      - Edit a word
- recall import    - Import words from JSON
- recall export    - Export words to JSON
- recall migrate   - Persist repaired scheduling state
- recall study     - Start a study session
- recall preview   - Show the next session without answering
- recall stats     - Show learning statistics
- recall delete    - Delete a single word
- recall reset     - Delete every word and all history
"""
from __future__ import annotations

import random
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import get_settings

from .session import SessionComposer, SessionMode, SessionPolicy, StudySession
from .word import Word, WordStatus, now_ms
from .word_store import WordNotFoundError, WordStore

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="recall",
    help="Recall: spaced repetition vocabulary study",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "status": {
        WordStatus.NEW: "white",
        WordStatus.LEARNED: "green",
        WordStatus.NEEDS_REVIEW: "red",
    },
}


def style_status(status: WordStatus) -> str:
    """Apply color styling to a word status."""
    color = STYLES["status"].get(status, "white")
    return f"[{color}]{status.value}[/{color}]"


def format_due(word: Word, now: int) -> str:
    due = word.schedule.due_date
    if due <= now:
        return "[yellow]due[/yellow]"
    return datetime.fromtimestamp(due / 1000).strftime("%Y-%m-%d")


def open_store() -> WordStore:
    return WordStore(get_settings().db_path)


def resolve_folder(store: WordStore, folder: Optional[str]) -> Optional[str]:
    """Turn a folder name or id into an id; exit if it does not exist."""
    if folder is None:
        return None
    found = store.find_folder(folder)
    if found is None:
        console.print(f"[red]No folder named {folder}[/red]")
        raise typer.Exit(1)
    return found.id


def build_composer() -> SessionComposer:
    settings = get_settings()
    rng = random.Random(settings.random_seed) if settings.random_seed is not None else None
    return SessionComposer(policy=SessionPolicy.from_settings(settings), rng=rng)


# =============================================================================
# Listing
# =============================================================================

# Practice count after which a word counts as studied
STUDIED_THRESHOLD = 10


class WordSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    STATUS = "status"
    PRACTICED = "practiced"


class WordFilter(str, Enum):
    ALL = "all"
    NOT_STUDIED = "not-studied"
    NOT_TESTED = "not-tested"
    CORRECT = "correct"
    INCORRECT = "incorrect"


_STATUS_ORDER = {WordStatus.NEW: 0, WordStatus.NEEDS_REVIEW: 1, WordStatus.LEARNED: 2}


def filter_words(words: list[Word], word_filter: WordFilter) -> list[Word]:
    """Keep the words matching a practice filter."""
    if word_filter is WordFilter.NOT_STUDIED:
        return [w for w in words if w.practiced_count < STUDIED_THRESHOLD]
    if word_filter is WordFilter.NOT_TESTED:
        return [w for w in words if w.practiced_count >= STUDIED_THRESHOLD and w.last_result is None]
    if word_filter is WordFilter.CORRECT:
        return [w for w in words if w.last_result == "correct"]
    if word_filter is WordFilter.INCORRECT:
        return [w for w in words if w.last_result == "incorrect"]
    return list(words)


def sort_words(words: list[Word], order: WordSort) -> list[Word]:
    """Sort words for display; ties keep their stored order."""
    if order is WordSort.NEWEST:
        return sorted(words, key=lambda w: w.created_at or 0, reverse=True)
    if order is WordSort.OLDEST:
        return sorted(words, key=lambda w: w.created_at or 0)
    if order is WordSort.STATUS:
        return sorted(words, key=lambda w: _STATUS_ORDER[w.status])
    return sorted(words, key=lambda w: w.practiced_count or 0, reverse=True)


# =============================================================================
# Word Management
# =============================================================================


@app.command()
def add(
    front: str = typer.Argument(..., help="Word to learn (e.g. 你好)"),
    back: str = typer.Argument(..., help="Meaning (e.g. hello)"),
    reading: Optional[str] = typer.Option(None, "--reading", "-r", help="Pronunciation (e.g. nǐ hǎo)"),
    folder: Optional[str] = typer.Option(
        None,
        "--folder", "-f",
        help="Folder name; created when missing",
    ),
) -> None:
    """Add a word."""
    store = open_store()
    folder_id = None
    if folder is not None:
        existing = store.find_folder(folder)
        folder_id = existing.id if existing else store.add_folder(folder).id

    word = store.add_word(front, back, reading=reading, folder_id=folder_id)
    console.print(f"[green]Added[/green] {word.front} ({word.id})")


@app.command()
def folders() -> None:
    """List folders."""
    store = open_store()
    table = Table()
    table.add_column("Name")
    table.add_column("Words", justify="right")
    table.add_column("ID", style="dim")
    for folder in store.get_folders():
        table.add_row(folder.name, str(folder.word_count), folder.id)
    console.print(table)


@app.command("folder-delete")
def folder_delete(
    folder: str = typer.Argument(..., help="Folder name or ID"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a folder together with its words."""
    store = open_store()
    folder_id = resolve_folder(store, folder)
    if not confirm and not Confirm.ask(f"Delete folder {folder} and all its words?", default=False):
        raise typer.Exit(0)

    deleted = store.delete_folder(folder_id)
    console.print(f"[green]Deleted folder {folder}[/green] ({deleted} words)")


@app.command()
def edit(
    word_id: str = typer.Argument(..., help="ID of the word to edit"),
    front: Optional[str] = typer.Option(None, "--front", help="New word"),
    back: Optional[str] = typer.Option(None, "--back", help="New meaning"),
    reading: Optional[str] = typer.Option(None, "--reading", "-r", help="New pronunciation"),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Move to this folder"),
) -> None:
    """Edit the content of a word. Its schedule is left untouched."""
    store = open_store()
    changes = {
        name: value
        for name, value in (("front", front), ("back", back), ("reading", reading))
        if value is not None
    }
    if folder is not None:
        changes["folder_id"] = resolve_folder(store, folder)
    if not changes:
        console.print("[yellow]Nothing to change.[/yellow]")
        raise typer.Exit(0)

    try:
        word = store.update_word(word_id, **changes)
    except WordNotFoundError:
        console.print(f"[red]No word with id {word_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Updated[/green] {word.front} ({word.id})")


@app.command("list")
def list_words(
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Only this folder"),
    sort: WordSort = typer.Option(WordSort.NEWEST, "--sort", "-s", case_sensitive=False, help="Display order"),
    status: WordFilter = typer.Option(
        WordFilter.ALL,
        "--status",
        case_sensitive=False,
        help="Only words matching this practice state",
    ),
) -> None:
    """List words with their status and next due date."""
    store = open_store()
    now = now_ms()
    words = store.get_words(resolve_folder(store, folder), now=now)
    words = sort_words(filter_words(words, status), sort)

    table = Table()
    table.add_column("Word")
    table.add_column("Meaning")
    table.add_column("Status")
    table.add_column("Interval", justify="right")
    table.add_column("Due")
    for word in words:
        table.add_row(
            word.front,
            word.back,
            style_status(word.status),
            f"{word.schedule.interval}d",
            format_due(word, now),
        )
    console.print(table)


@app.command("import")
def import_words(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file to import"),
) -> None:
    """Import words from a JSON export."""
    store = open_store()
    count = store.import_json(path)
    console.print(f"[green]Imported {count} words from {path}[/green]")


@app.command("export")
def export_words(
    path: Path = typer.Argument(..., dir_okay=False, help="Destination JSON file"),
) -> None:
    """Export every word to JSON."""
    store = open_store()
    count = store.export_json(path)
    console.print(f"[green]Exported {count} words to {path}[/green]")


@app.command()
def migrate() -> None:
    """Initialize and repair scheduling state for every stored word."""
    store = open_store()
    legacy = store.count_legacy_words()
    words = store.get_words()
    store.save_words(words)
    console.print(
        f"[green]Checked {len(words)} words[/green] "
        f"({legacy} without scheduling state were initialized)"
    )


@app.command()
def reset(
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Delete every word and all study history."""
    if not confirm and not Confirm.ask("Reset ALL words and history? This cannot be undone!", default=False):
        raise typer.Exit(0)

    store = open_store()
    store.clear_all()
    console.print("[green]All words and history have been reset.[/green]")


# =============================================================================
# Study
# =============================================================================


def display_word_front(word: Word, index: int, total: int) -> None:
    """Display the prompt side of a word."""
    console.print()
    console.print(Panel(
        f"[bold]{word.front}[/bold]",
        title=f"[{index}/{total}] {style_status(word.status)}",
        border_style="cyan",
    ))


def display_word_back(word: Word) -> None:
    """Display the answer side of a word."""
    reading = f"{word.reading}\n" if word.reading else ""
    console.print(Panel(f"{reading}{word.back}", border_style="dim"))


def display_session_summary(session: StudySession) -> None:
    score = session.score()
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"Words answered: {session.correct_count + session.incorrect_count}\n"
        f"Correct: {score.score}\n"
        f"Accuracy: {score.percentage}%",
        title="Summary",
        border_style="green",
    ))
    if session.incorrect_words:
        console.print("\n[bold red]To review[/bold red]")
        for word in session.incorrect_words:
            console.print(f"  {word.front} - {word.back}")


@app.command()
def study(
    mode: SessionMode = typer.Option(
        SessionMode.NORMAL,
        "--mode", "-m",
        case_sensitive=False,
        help="normal (mixed), unseen (new words only) or learned (learned words only)",
    ),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Only this folder"),
) -> None:
    """Start a study session."""
    store = open_store()
    folder_id = resolve_folder(store, folder)
    now = now_ms()

    pool = store.get_words(folder_id, now=now)
    queue = build_composer().compose(pool, mode, now)

    if not queue:
        console.print("[yellow]No words to test in this mode.[/yellow]")
        raise typer.Exit(0)

    session = StudySession(mode=mode, words=queue, started_at=now, folder_id=folder_id)
    session_id = store.start_session(mode.value, folder_id, now=now)

    try:
        while not session.is_complete:
            word = session.current
            display_word_front(word, session.current_index + 1, session.total)
            Prompt.ask("[dim]Press Enter to reveal[/dim]", default="", show_default=False)
            display_word_back(word)

            is_correct = Confirm.ask("Did you get it right?")
            answered_at = now_ms()
            updated = session.answer(is_correct, answered_at)

            store.save_word(updated)
            store.log_review(updated, is_correct, now=answered_at)

            if is_correct:
                console.print(f"[{STYLES['correct']}]Correct[/] next in {updated.schedule.interval}d")
            else:
                console.print(f"[{STYLES['incorrect']}]Incorrect[/] back tomorrow")
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Session interrupted[/yellow]")
    finally:
        answered = session.correct_count + session.incorrect_count
        accuracy = session.correct_count / answered if answered else 0.0
        store.end_session(session_id, answered, accuracy)

    display_session_summary(session)


@app.command()
def preview(
    mode: SessionMode = typer.Option(SessionMode.NORMAL, "--mode", "-m", case_sensitive=False),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Only this folder"),
) -> None:
    """Preview the words the next session would present."""
    store = open_store()
    now = now_ms()
    pool = store.get_words(resolve_folder(store, folder), now=now)
    queue = build_composer().compose(pool, mode, now)

    if not queue:
        console.print("[yellow]No words to test in this mode.[/yellow]")
        return

    console.print(f"\n[bold]Upcoming {mode.value} session[/bold]\n")

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Word")
    table.add_column("Status")
    table.add_column("Due")
    for index, word in enumerate(queue, start=1):
        table.add_row(str(index), word.front, style_status(word.status), format_due(word, now))
    console.print(table)


@app.command()
def stats(
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Only this folder"),
) -> None:
    """Show learning statistics and progress."""
    store = open_store()
    db_stats = store.get_stats(resolve_folder(store, folder))

    console.print("\n[bold cyan]Learning Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Total words", str(db_stats["total_words"]))
    table.add_row("New", str(db_stats["by_status"]["new"]))
    table.add_row("Learned", str(db_stats["by_status"]["learned"]))
    table.add_row("Needs review", str(db_stats["by_status"]["needs_review"]))
    table.add_row("Due now", str(db_stats["words_due"]))
    table.add_row("Total reviews", str(db_stats["total_reviews"]))
    table.add_row("Retention rate", f"{db_stats['retention_rate_percent']:.1f}%")
    table.add_row("Sessions completed", str(db_stats["sessions_completed"]))

    console.print(table)

    sessions = store.get_session_history(limit=5)
    if sessions:
        console.print("\n[bold]Recent Sessions[/bold]")
        session_table = Table()
        session_table.add_column("Date")
        session_table.add_column("Mode")
        session_table.add_column("Words")
        session_table.add_column("Accuracy")

        for s in sessions:
            date_str = datetime.fromtimestamp(s.started_at / 1000).strftime("%Y-%m-%d %H:%M")
            session_table.add_row(date_str, s.mode, str(s.words_reviewed), f"{s.accuracy * 100:.0f}%")

        console.print(session_table)


@app.command()
def delete(word_id: str = typer.Argument(..., help="ID of the word to delete")) -> None:
    """Delete a single word."""
    store = open_store()
    try:
        store.delete_word(word_id)
    except WordNotFoundError:
        console.print(f"[red]No word with id {word_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted {word_id}[/green]")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
