"""Storage layer: deck CSV files are the database.

Each deck file is read whole, validated eagerly, and written back whole
through a temp file and an atomic rename. Rows that were not reviewed are
written back from the field strings they were read from, so a load/save
cycle only changes the scheduling columns of reviewed cards.
"""

import contextlib
import csv
import io
import logging
import math
import os
import tempfile
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from rote.core.errors import ContractError, FormatError, PersistenceError
from rote.core.models import COLUMNS, Card, new_card_id

logger = logging.getLogger(__name__)

DECK_SUFFIX = ".csv"
DEFAULT_DECK = "default"

# Index of each fixed column within a row
_DECK, _FRONT, _BACK, _MEDIA, _ID, _STABILITY, _DIFFICULTY, _DUE, _LAST_REVIEW = range(
    len(COLUMNS)
)


class DeckDialect(csv.Dialect):
    """Canonical CSV dialect for deck files."""

    delimiter = ","
    quotechar = '"'
    doublequote = True
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_MINIMAL
    strict = True


@dataclass
class DeckFile:
    """One parsed deck source."""

    path: Path | None
    columns: list[str]
    cards: list[Card] = field(default_factory=list)
    lines: list[int] = field(default_factory=list)  # source line of each card

    @property
    def label(self) -> str:
        return str(self.path) if self.path else "<text>"


def format_float(value: float | None) -> str:
    return "" if value is None else f"{value:.4f}"


def format_date(value: date | None) -> str:
    return "" if value is None else value.isoformat()


def _parse_float(raw: str, column: str, source, line: int) -> float | None:
    text = raw.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        raise FormatError(f"{column}: not a number: {raw!r}", source, line) from None
    if not math.isfinite(value):
        raise FormatError(f"{column}: must be finite, got {raw!r}", source, line)
    return value


def _parse_date(raw: str, column: str, source, line: int) -> date | None:
    text = raw.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise FormatError(f"{column}: not a YYYY-MM-DD date: {raw!r}", source, line) from None


def _check_header(header: list[str], source) -> list[str]:
    if [name.strip() for name in header[: len(COLUMNS)]] != list(COLUMNS):
        raise FormatError(
            f"bad header {','.join(header)!r}; expected {','.join(COLUMNS)!r} "
            "optionally followed by extra columns",
            source,
            1,
        )
    return header


def _row_to_card(row: list[str], default_deck: str, source, line: int) -> Card:
    stability = _parse_float(row[_STABILITY], "stability", source, line)
    difficulty = _parse_float(row[_DIFFICULTY], "difficulty", source, line)
    due = _parse_date(row[_DUE], "due", source, line)
    last_review = _parse_date(row[_LAST_REVIEW], "last_review", source, line)

    state = (stability, difficulty, last_review)
    if any(v is None for v in state) and any(v is not None for v in state):
        raise FormatError(
            "stability, difficulty and last_review must be all set or all empty", source, line
        )
    if last_review is not None:
        if due is None:
            raise FormatError("reviewed card has no due date", source, line)
        if due < last_review:
            raise FormatError(
                f"due {due.isoformat()} is before last_review {last_review.isoformat()}",
                source,
                line,
            )

    raw = list(row)
    if not raw[_ID].strip():
        raw[_ID] = new_card_id()

    try:
        card = Card(
            id=raw[_ID],
            deck=row[_DECK] if row[_DECK].strip() else default_deck,
            front=row[_FRONT],
            back=row[_BACK],
            media=row[_MEDIA],
            stability=stability,
            difficulty=difficulty,
            due=due,
            last_review=last_review,
            extra=row[len(COLUMNS) :],
        )
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise FormatError(problems, source, line) from exc

    card._raw = raw
    return card


def parse_deck(
    raw_text: str,
    source: str | Path | None = None,
    default_deck: str | None = None,
) -> DeckFile:
    """Parse deck text into a DeckFile.

    Args:
        raw_text: Full CSV text including the header row
        source: Path or label used in error messages (and for the default deck)
        default_deck: Deck for rows with an empty deck column; defaults to
            the source file's stem

    Raises:
        FormatError: on a bad header, a row with the wrong number of
            fields, an unparsable value or a duplicate id
    """
    path = Path(source) if source is not None else None
    if default_deck is None:
        default_deck = path.stem if path is not None else DEFAULT_DECK

    text = raw_text.removeprefix("\ufeff")
    reader = csv.reader(io.StringIO(text, newline=""), dialect=DeckDialect)

    try:
        header = next(reader, None)
        if header is None:
            raise FormatError("missing header", source, 1)
        deck_file = DeckFile(path=path, columns=_check_header(header, source))

        seen: dict[str, int] = {}
        for row in reader:
            line = reader.line_num
            if not row:
                continue
            if len(row) != len(deck_file.columns):
                raise FormatError(
                    f"expected {len(deck_file.columns)} fields, got {len(row)}", source, line
                )
            card = _row_to_card(row, default_deck, source, line)
            if card.id in seen:
                raise FormatError(
                    f"duplicate id {card.id!r} (first seen on line {seen[card.id]})",
                    source,
                    line,
                )
            seen[card.id] = line
            deck_file.cards.append(card)
            deck_file.lines.append(line)
    except csv.Error as exc:
        raise FormatError(f"malformed CSV: {exc}", source, reader.line_num) from exc

    return deck_file


def parse(
    raw_text: str,
    source: str | Path | None = None,
    default_deck: str | None = None,
) -> list[Card]:
    """Parse deck text into cards, in row order."""
    return parse_deck(raw_text, source, default_deck).cards


def card_to_row(card: Card, width: int = len(COLUMNS)) -> list[str]:
    """Field strings for one card.

    Cards read from a file reuse their original strings; only the
    scheduling columns are re-formatted once the card has been reviewed.
    """
    schedule = [
        format_float(card.stability),
        format_float(card.difficulty),
        format_date(card.due),
        format_date(card.last_review),
    ]
    if card._raw is not None:
        row = list(card._raw)
        if card._rescheduled:
            row[_STABILITY : _LAST_REVIEW + 1] = schedule
    else:
        row = [card.deck, card.front, card.back, card.media, card.id, *schedule, *card.extra]

    if len(row) < width:
        row.extend([""] * (width - len(row)))
    return row


def serialize(cards: Iterable[Card], columns: Sequence[str] = COLUMNS) -> str:
    """Render cards as deck text in the canonical dialect.

    The output depends only on the cards and columns given, so writing
    the same sequence twice yields identical text.
    """
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, dialect=DeckDialect)
    writer.writerow(columns)
    for card in cards:
        writer.writerow(card_to_row(card, len(columns)))
    return buffer.getvalue()


def discover_files(paths: Iterable[str | Path]) -> list[Path]:
    """Expand files and directories into the list of deck files to load.

    Directories are searched recursively for ``.csv`` files, sorted so the
    load order is stable. Other files are ignored; duplicates are dropped.
    """
    files: list[Path] = []
    seen: set[Path] = set()

    def add(path: Path) -> None:
        key = path.resolve()
        if key not in seen:
            seen.add(key)
            files.append(path)

    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            for found in sorted(path.rglob(f"*{DECK_SUFFIX}")):
                if found.is_file():
                    add(found)
        elif path.suffix == DECK_SUFFIX:
            add(path)
        else:
            logger.debug("Skipping non-deck path %s", path)
    return files


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to path via a synced temp file and an atomic rename."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


class CardStore:
    """All cards loaded from one or more deck files, in load order."""

    def __init__(self, write_attempts: int = 3, retry_delay: float = 0.05):
        if write_attempts < 1:
            raise ValueError("write_attempts must be at least 1")
        self.write_attempts = write_attempts
        self.retry_delay = retry_delay
        self.files: list[DeckFile] = []
        self.errors: list[FormatError] = []
        self._index: dict[str, tuple[DeckFile, int]] = {}

    @classmethod
    def open(cls, paths: Iterable[str | Path], **kwargs) -> "CardStore":
        """Create a store and load every deck file found under ``paths``."""
        store = cls(**kwargs)
        store.load(paths)
        return store

    def load(self, paths: Iterable[str | Path]) -> int:
        """Load deck files; a file that fails validation is skipped and recorded.

        Returns the number of files loaded.
        """
        loaded = 0
        for path in discover_files(paths):
            try:
                self.load_file(path)
            except FormatError as exc:
                logger.warning("Skipping %s", exc)
                self.errors.append(exc)
            else:
                loaded += 1
        return loaded

    def load_file(self, path: Path) -> DeckFile:
        """Parse one deck file and add its cards to the store.

        Raises:
            FormatError: if the file is unreadable, invalid, or reuses an id
                from a file loaded earlier
        """
        try:
            with open(path, encoding="utf-8", newline="") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise FormatError(f"cannot read file: {exc}", path) from exc

        deck_file = parse_deck(text, source=path)
        for card, line in zip(deck_file.cards, deck_file.lines):
            if card.id in self._index:
                other = self._index[card.id][0]
                raise FormatError(f"duplicate id {card.id!r} (already in {other.label})", path, line)

        self.files.append(deck_file)
        for position, card in enumerate(deck_file.cards):
            self._index[card.id] = (deck_file, position)

        logger.info("Loaded %d card(s) from %s", len(deck_file.cards), path)
        return deck_file

    @property
    def cards(self) -> list[Card]:
        """Every loaded card, file by file in row order."""
        return [card for deck_file in self.files for card in deck_file.cards]

    def __len__(self) -> int:
        return len(self._index)

    def get(self, card_id: str) -> Card | None:
        entry = self._index.get(card_id)
        if entry is None:
            return None
        deck_file, position = entry
        return deck_file.cards[position]

    def decks(self) -> list[str]:
        """Distinct deck names across all files, sorted."""
        return sorted({card.deck for card in self.cards})

    def replace(self, card: Card) -> Card:
        """Swap in an updated card with the same id; returns the previous one."""
        entry = self._index.get(card.id)
        if entry is None:
            raise ContractError(f"Unknown card: {card.id}")
        deck_file, position = entry
        previous = deck_file.cards[position]
        deck_file.cards[position] = card
        return previous

    def save(self, card: Card) -> Path | None:
        """Replace a card and durably rewrite its file.

        If the write fails, the previous card is put back so memory matches
        what is on disk.

        Raises:
            PersistenceError: if the file could not be written
        """
        previous = self.replace(card)
        deck_file = self._index[card.id][0]
        try:
            self.write(deck_file)
        except PersistenceError:
            self.replace(previous)
            raise
        return deck_file.path

    def write(self, deck_file: DeckFile) -> None:
        """Rewrite a deck file, retrying a bounded number of times."""
        if deck_file.path is None:
            return
        text = serialize(deck_file.cards, deck_file.columns)

        last_error: OSError | None = None
        for attempt in range(1, self.write_attempts + 1):
            try:
                atomic_write_text(deck_file.path, text)
            except OSError as exc:
                last_error = exc
                logger.warning(
                    "Write attempt %d/%d for %s failed: %s",
                    attempt,
                    self.write_attempts,
                    deck_file.path,
                    exc,
                )
                if attempt < self.write_attempts:
                    time.sleep(self.retry_delay)
            else:
                logger.debug("Wrote %s", deck_file.path)
                return

        raise PersistenceError(f"Could not write {deck_file.path}: {last_error}") from last_error
