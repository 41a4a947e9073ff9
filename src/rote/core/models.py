"""Pydantic models for rote cards and review sessions."""

from datetime import date
from enum import IntEnum, StrEnum
from typing import Annotated
from uuid import uuid4

from pydantic import BaseModel, Field, PrivateAttr

from rote.core.errors import ContractError

# Fixed column order of a deck file; anything after these is carried in Card.extra.
COLUMNS = (
    "deck",
    "front",
    "back",
    "media",
    "id",
    "stability",
    "difficulty",
    "due",
    "last_review",
)

DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0


def today() -> date:
    """Get the current local calendar day."""
    return date.today()


def new_card_id() -> str:
    return str(uuid4())


class Grade(IntEnum):
    """Review grade, ordinal 1-4."""

    AGAIN = 1  # Forgot
    HARD = 2  # Recalled with serious effort
    GOOD = 3  # Recalled
    EASY = 4  # Recalled effortlessly

    @classmethod
    def coerce(cls, value: "Grade | int") -> "Grade":
        """Validate a grade coming from a caller.

        Only the integers 1-4 (or Grade members) are accepted; anything else
        is a ContractError rather than being clamped into range.
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise ContractError(f"Grade must be an integer 1-4, got {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise ContractError(f"Grade must be 1-4, got {value}") from None


class SessionState(StrEnum):
    """States of a drill session."""

    SELECTING_DECKS = "selecting-decks"
    PRESENTING = "presenting"
    AWAITING_GRADE = "awaiting-grade"
    UPDATING = "updating"
    FINISHED = "finished"


class Card(BaseModel):
    """One row of a deck file: authored fields, scheduling state, extra columns."""

    id: Annotated[str, Field(default_factory=new_card_id, min_length=1)]
    deck: str
    front: str
    back: str = ""
    media: str = ""

    # Scheduling state (empty for cards that were never reviewed)
    stability: float | None = Field(default=None, gt=0.0, allow_inf_nan=False)
    difficulty: float | None = Field(
        default=None, ge=DIFFICULTY_MIN, le=DIFFICULTY_MAX, allow_inf_nan=False
    )
    due: date | None = None
    last_review: date | None = None

    # Unknown trailing columns, passed through untouched
    extra: list[str] = Field(default_factory=list)

    # Field strings exactly as read from the source, and whether the schedule
    # has changed since; untouched rows are written back from _raw verbatim
    _raw: list[str] | None = PrivateAttr(default=None)
    _rescheduled: bool = PrivateAttr(default=False)

    @property
    def is_new(self) -> bool:
        """A card that has never been reviewed."""
        return self.last_review is None

    def is_due(self, on: date) -> bool:
        """Check whether the card is eligible for review on the given day.

        A card that was never reviewed is due whatever its due column says.
        """
        return self.is_new or self.due is None or self.due <= on

    def with_schedule(
        self,
        stability: float,
        difficulty: float,
        due: date,
        last_review: date,
    ) -> "Card":
        """Return a copy carrying new scheduling state."""
        updated = self.model_copy(
            update={
                "stability": stability,
                "difficulty": difficulty,
                "due": due,
                "last_review": last_review,
            }
        )
        updated._rescheduled = True
        return updated


class CardView(BaseModel):
    """What the presentation layer gets for the card currently in flight."""

    card_id: str
    deck: str
    prompt: str
    answer: str
    media: str = ""
    position: int
    total: int


class DeckSummary(BaseModel):
    """Due and total counts for one deck."""

    name: str
    due: int = 0
    total: int = 0


class SessionSummary(BaseModel):
    """Tally of a drill session."""

    total: int = 0
    reviewed: int = 0
    skipped: int = 0
    remaining: int = 0
    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0
