"""Core library for rote."""

from rote.core.cloze import extract_cloze_deletions, render_answer, render_prompt, render_reveal
from rote.core.config import Settings
from rote.core.errors import ContractError, FormatError, PersistenceError, RoteError
from rote.core.models import (
    COLUMNS,
    Card,
    CardView,
    DeckSummary,
    Grade,
    SessionState,
    SessionSummary,
)
from rote.core.scheduler import (
    DEFAULT_PARAMETERS,
    FSRSParameters,
    MemoryState,
    ReviewResult,
    Scheduler,
    fuzz_interval,
    initial_state,
    retrievability,
    review,
)
from rote.core.session import ReviewSession
from rote.core.storage import CardStore, DeckFile, discover_files, parse, serialize

__all__ = [
    # Models
    "COLUMNS",
    "Card",
    "CardView",
    "DeckSummary",
    "Grade",
    "SessionState",
    "SessionSummary",
    # Errors
    "ContractError",
    "FormatError",
    "PersistenceError",
    "RoteError",
    # Cloze
    "extract_cloze_deletions",
    "render_answer",
    "render_prompt",
    "render_reveal",
    # Memory model
    "DEFAULT_PARAMETERS",
    "FSRSParameters",
    "MemoryState",
    "ReviewResult",
    "Scheduler",
    "fuzz_interval",
    "initial_state",
    "retrievability",
    "review",
    # Storage
    "CardStore",
    "DeckFile",
    "discover_files",
    "parse",
    "serialize",
    # Session
    "ReviewSession",
    # Config
    "Settings",
]
