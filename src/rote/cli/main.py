"""Main CLI entry point for rote."""

import os
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rote.cli.helpers import (
    configure_logging,
    console,
    get_settings,
    open_store,
    parse_deck_selection,
)
from rote.core.errors import ContractError, FormatError, PersistenceError
from rote.core.models import DeckSummary, Grade
from rote.core.session import ReviewSession
from rote.core.storage import CardStore, discover_files

load_dotenv()

app = typer.Typer(
    name="rote",
    help="Spaced repetition drills over plain CSV decks.",
    no_args_is_help=True,
)

PATHS_ARGUMENT = typer.Argument(..., help="Deck files or directories of .csv decks")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Spaced repetition drills over plain CSV decks."""
    configure_logging(verbose)


def _deck_table(summaries: dict[str, DeckSummary], numbered: bool = False) -> Table:
    table = Table(title="Decks")
    if numbered:
        table.add_column("#", justify="right", style="dim")
    table.add_column("Deck", style="cyan")
    table.add_column("Due", justify="right", style="green")
    table.add_column("Total", justify="right")

    for i, summary in enumerate(summaries.values(), 1):
        row = [escape(summary.name), str(summary.due), str(summary.total)]
        table.add_row(*([str(i)] + row if numbered else row))
    return table


# ============================================================================
# DECKS command
# ============================================================================


@app.command()
def decks(paths: list[Path] = PATHS_ARGUMENT) -> None:
    """Show due and total cards per deck."""
    settings = get_settings()
    store = open_store(paths, settings)
    session = ReviewSession(store, settings.scheduler())
    console.print(_deck_table(session.get_due_counts()))


# ============================================================================
# CHECK command
# ============================================================================


@app.command()
def check(paths: list[Path] = PATHS_ARGUMENT) -> None:
    """Validate deck files without changing them."""
    files = discover_files(paths)
    if not files:
        rprint("[red]No deck files found.[/red]")
        raise typer.Exit(1)

    store = CardStore()
    failures = 0
    for path in files:
        try:
            deck_file = store.load_file(path)
        except FormatError as exc:
            failures += 1
            rprint(f"[red]✗ {escape(str(exc))}[/red]")
            continue

        new = sum(1 for card in deck_file.cards if card.is_new)
        rprint(
            f"[green]✓[/green] {escape(str(path))}: {len(deck_file.cards)} card(s), {new} new"
        )

    if failures:
        rprint(f"\n[red]{failures} file(s) with errors.[/red]")
        raise typer.Exit(1)


# ============================================================================
# DRILL command
# ============================================================================


@app.command()
def drill(
    paths: list[Path] = PATHS_ARGUMENT,
    deck: list[str] = typer.Option(
        None,
        "--deck",
        "-d",
        help="Deck to drill (repeatable); prompts when omitted",
    ),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Maximum cards to review"),
    new_cards: int | None = typer.Option(
        None, "--new", "-n", help="Maximum never-reviewed cards to include"
    ),
    seed: int | None = typer.Option(None, "--seed", help="Seed for interval fuzz"),
) -> None:
    """Review due cards in the terminal."""
    settings = get_settings()
    store = open_store(paths, settings)
    session = ReviewSession(store, settings.scheduler(seed))

    if deck:
        selected = list(deck)
    else:
        summaries = session.get_due_counts()
        console.print(_deck_table(summaries, numbered=True))
        rprint("  [dim]0[/dim] All decks\n")
        selected = _prompt_deck_selection(list(summaries))

    try:
        count = session.select_decks(selected, limit=limit, new_limit=new_cards)
    except ContractError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)

    if count == 0:
        rprint("[green]No cards due for review![/green]")
        return

    rprint(f"\n[bold]Review Session[/bold]: {count} card(s)\n")

    while (view := session.next_card()) is not None:
        title = f"Card {view.position}/{view.total} - {view.deck}"
        console.print(Panel(Text(view.prompt), title=escape(title), border_style="blue"))

        typer.prompt("\n[Press Enter to reveal answer]", default="", show_default=False)

        console.print(Panel(Text(view.answer), title="Answer", border_style="green"))
        if view.media:
            rprint(f"[dim]Media: {escape(view.media)}[/dim]")

        grade = _prompt_grade()
        if grade is None:
            rprint("\n[yellow]Session ended early.[/yellow]")
            break

        try:
            result = session.submit_grade(view.card_id, grade)
        except PersistenceError as exc:
            rprint(f"[red]{escape(str(exc))}[/red]")
            rprint("[red]This review was not saved; earlier reviews are on disk.[/red]")
            raise typer.Exit(1)

        rprint(
            f"[dim]Next review: {result.due.isoformat()} "
            f"(in {result.interval_days} day(s))[/dim]\n"
        )

    summary = session.summary()
    rprint("\n[bold green]Session complete![/bold green]")
    rprint(f"Reviewed {summary.reviewed} of {summary.total} card(s).")
    rprint(
        f"  Again: {summary.again}, Hard: {summary.hard}, "
        f"Good: {summary.good}, Easy: {summary.easy}"
    )


def _prompt_deck_selection(names: list[str]) -> list[str]:
    """Prompt until a valid deck selection is entered."""
    while True:
        answer = typer.prompt("Select deck(s) (comma-separated numbers, or 0 for all)", default="0")
        selected = parse_deck_selection(answer, names)
        if selected is not None:
            return selected
        rprint("[red]Invalid selection. Try again.[/red]")


def _prompt_grade() -> Grade | None:
    """Prompt user for a grade."""
    rprint("\n[bold]Rate this card:[/bold]")
    rprint(
        "  [red]1[/red] Again (forgot)  "
        "[yellow]2[/yellow] Hard  "
        "[green]3[/green] Good  "
        "[cyan]4[/cyan] Easy  "
        "[dim]q[/dim] Quit"
    )

    while True:
        choice = typer.prompt("Rating", default="3")
        if choice.lower() == "q":
            return None
        try:
            value = int(choice)
            if 1 <= value <= 4:
                return Grade(value)
        except ValueError:
            pass
        rprint("[red]Invalid choice. Enter 1-4 or q to quit.[/red]")


# ============================================================================
# SERVE command
# ============================================================================


@app.command()
def serve(
    paths: list[Path] = PATHS_ARGUMENT,
    port: int = typer.Option(3000, "--port", "-p", help="Port to run the server on"),
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
) -> None:
    """Start the web API for review sessions."""
    import uvicorn

    if not discover_files(paths):
        rprint("[red]No deck files found.[/red]")
        raise typer.Exit(1)

    os.environ["ROTE_PATHS"] = os.pathsep.join(str(p) for p in paths)

    rprint("\n[bold]Starting rote web server[/bold]")
    rprint(f"  URL: http://{host}:{port}")
    rprint(f"  Decks: http://{host}:{port}/decks")
    rprint("\n[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run("rote.web.app:app", host=host, port=port)
