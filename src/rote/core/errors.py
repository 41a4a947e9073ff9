"""Exceptions raised by the rote core."""

from pathlib import Path


class RoteError(Exception):
    """Base class for all rote errors."""


class FormatError(RoteError):
    """Raised when a deck source cannot be parsed.

    Carries the source (file path or label) and the 1-based line of the
    offending row when known, and prefixes both onto the message.
    """

    def __init__(self, message: str, source: str | Path | None = None, row: int | None = None):
        self.source = str(source) if source is not None else None
        self.row = row
        self.reason = message
        location = self.source or "<text>"
        if row is not None:
            location = f"{location}:{row}"
        super().__init__(f"{location}: {message}")


class ContractError(RoteError):
    """Raised when a caller breaks the review protocol (bad grade, wrong card, bad state)."""


class PersistenceError(RoteError):
    """Raised when an updated deck could not be durably written."""
