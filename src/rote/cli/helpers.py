"""Shared CLI helpers: settings, store loading, logging setup."""

import logging
from collections.abc import Sequence
from pathlib import Path

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from rote.core.config import Settings
from rote.core.storage import CardStore

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Route log records through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def get_settings() -> Settings:
    """Read settings from the environment."""
    return Settings.from_env()


def open_store(paths: Sequence[Path], settings: Settings) -> CardStore:
    """Load every deck under ``paths``, reporting files that were skipped.

    Exits with status 1 when nothing could be loaded.
    """
    store = CardStore.open(paths, write_attempts=settings.write_attempts)

    for error in store.errors:
        rprint(f"[yellow]Skipped {escape(str(error))}[/yellow]")

    if not store.files:
        rprint("[red]No deck files found.[/red]")
        raise typer.Exit(1)
    if len(store) == 0:
        rprint("[red]No cards found.[/red]")
        raise typer.Exit(1)
    return store


def parse_deck_selection(answer: str, names: Sequence[str]) -> list[str] | None:
    """Turn ``"1,3"`` into deck names; ``"0"`` selects all decks (empty list).

    Returns None if the answer is not a valid selection.
    """
    selected: list[str] = []
    for part in answer.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            number = int(part)
        except ValueError:
            return None
        if number == 0:
            return []
        if not 1 <= number <= len(names):
            return None
        selected.append(names[number - 1])
    return selected or None
