"""FSRS scheduler wrapper for rote.

The memory model itself is py-fsrs (FSRS-5). This module feeds it an
explicit ``FSRSParameters`` and calendar days, turns off its own learning
steps and fuzz, and keeps three things local: the stability floor, the
interval bounds and a fuzz that only draws from a caller-supplied
``random.Random``.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from functools import lru_cache

from fsrs import Card as FSRSCard
from fsrs import Rating, State
from fsrs import Scheduler as FSRSScheduler
from pydantic import BaseModel, ConfigDict, Field, field_validator

from rote.core.errors import ContractError
from rote.core.models import DIFFICULTY_MAX, DIFFICULTY_MIN, Card, Grade, today

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.40255,  # w0  initial stability, again
    1.18385,  # w1  initial stability, hard
    3.173,  # w2  initial stability, good
    15.69105,  # w3  initial stability, easy
    7.1949,  # w4  initial difficulty intercept
    0.5345,  # w5  initial difficulty slope
    1.4604,  # w6  difficulty delta per grade
    0.0046,  # w7  difficulty mean reversion
    1.54575,  # w8  recall stability scale
    0.1192,  # w9  recall stability exponent
    1.01925,  # w10 recall retrievability factor
    1.9395,  # w11 lapse stability scale
    0.11,  # w12 lapse difficulty exponent
    0.29605,  # w13 lapse stability exponent
    2.2698,  # w14 lapse retrievability factor
    0.2315,  # w15 hard penalty
    2.9898,  # w16 easy bonus
    0.51655,  # w17 same-day stability rate
    0.6621,  # w18 same-day grade offset
)

# Reference point for day arithmetic handed to py-fsrs
_EPOCH = datetime(2000, 1, 1, tzinfo=UTC)


class FSRSParameters(BaseModel):
    """Parameter set for the memory model.

    Passed explicitly to every call so the constants are configuration,
    not module state.
    """

    model_config = ConfigDict(frozen=True)

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    desired_retention: float = Field(default=0.9, gt=0.0, lt=1.0)
    maximum_interval: int = Field(default=36500, ge=1)
    minimum_stability: float = Field(default=0.01, gt=0.0)
    fuzz_factor: float = Field(default=0.05, ge=0.0, lt=1.0)

    @field_validator("weights")
    @classmethod
    def _check_weights(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if len(value) != len(DEFAULT_WEIGHTS):
            raise ValueError(f"expected {len(DEFAULT_WEIGHTS)} weights, got {len(value)}")
        if not all(math.isfinite(w) for w in value):
            raise ValueError("weights must be finite")
        return value


DEFAULT_PARAMETERS = FSRSParameters()


@dataclass(frozen=True)
class MemoryState:
    """Scheduling state of a card that has been reviewed at least once."""

    stability: float
    difficulty: float
    last_review: date


@dataclass(frozen=True)
class ScheduleOutcome:
    """Result of one application of the memory model."""

    stability: float
    difficulty: float
    due: date
    interval_days: int


@dataclass
class ReviewResult:
    """Result of grading a card."""

    card: Card
    grade: Grade
    reviewed_on: date
    due: date
    interval_days: int
    stability: float
    difficulty: float
    retrievability: float | None = None  # None for a first review

    @property
    def card_id(self) -> str:
        return self.card.id


@lru_cache(maxsize=32)
def _fsrs_scheduler(params: FSRSParameters) -> FSRSScheduler:
    """Build the py-fsrs scheduler for a parameter set.

    Learning and relearning steps are empty so every grade lands on a
    whole-day interval, and py-fsrs fuzz is off in favour of ``fuzz_interval``.
    """
    try:
        return FSRSScheduler(
            parameters=params.weights,
            desired_retention=params.desired_retention,
            learning_steps=(),
            relearning_steps=(),
            maximum_interval=params.maximum_interval,
            enable_fuzzing=False,
        )
    except ValueError as exc:
        raise ContractError(f"Invalid memory model parameters: {exc}") from exc


def _at(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=UTC)


def retrievability(stability: float, elapsed_days: float) -> float:
    """Probability of recall ``elapsed_days`` after a review.

    Monotonically decreasing in elapsed time, increasing in stability, and
    exactly 1.0 at zero elapsed time. Elapsed time counts in whole days;
    negative values count as zero.
    """
    if not math.isfinite(stability) or stability <= 0:
        raise ContractError(f"Stability must be a positive number, got {stability}")
    if not math.isfinite(elapsed_days):
        raise ContractError(f"Elapsed days must be finite, got {elapsed_days}")
    card = FSRSCard(state=State.Review, stability=stability, due=_EPOCH, last_review=_EPOCH)
    at = _EPOCH + timedelta(days=max(elapsed_days, 0.0))
    return card.get_retrievability(at)


def _bound_interval(days: int, params: FSRSParameters) -> int:
    return min(max(days, 1), params.maximum_interval)


def fuzz_interval(
    interval: int,
    params: FSRSParameters = DEFAULT_PARAMETERS,
    rng: random.Random | None = None,
) -> int:
    """Spread an interval so cards reviewed together do not come due together.

    Intervals of at least 3 days are scaled by a factor drawn from ``rng``
    in [1 - fuzz_factor, 1 + fuzz_factor], rounded half up and bounded to
    [1, maximum_interval]. Without ``rng`` the interval is only bounded.
    """
    interval = _bound_interval(interval, params)
    if rng is None or params.fuzz_factor == 0 or interval < 3:
        return interval

    factor = rng.uniform(1.0 - params.fuzz_factor, 1.0 + params.fuzz_factor)
    return _bound_interval(int(math.floor(interval * factor + 0.5)), params)


def _guard_state(stability: float, difficulty: float, params: FSRSParameters) -> tuple[float, float]:
    # A non-finite value means the inputs or weights are broken: reject it.
    if not math.isfinite(stability) or not math.isfinite(difficulty):
        raise ContractError(
            f"Memory model produced a non-finite state (stability={stability}, "
            f"difficulty={difficulty})"
        )
    # Stability is floored at minimum_stability; difficulty is clamped to its range.
    if stability < params.minimum_stability:
        logger.debug("Clamping stability %.6f to floor %.6f", stability, params.minimum_stability)
        stability = params.minimum_stability
    return stability, min(max(difficulty, DIFFICULTY_MIN), DIFFICULTY_MAX)


def _run(
    fsrs_card: FSRSCard,
    grade: Grade,
    params: FSRSParameters,
    on: date,
    rng: random.Random | None,
) -> ScheduleOutcome:
    try:
        reviewed, _review_log = _fsrs_scheduler(params).review_card(
            fsrs_card, Rating(grade.value), _at(on)
        )
    except OverflowError as exc:
        raise ContractError(f"Memory model overflowed: {exc}") from exc

    stability, difficulty = _guard_state(reviewed.stability, reviewed.difficulty, params)
    interval = fuzz_interval((reviewed.due - reviewed.last_review).days, params, rng)
    return ScheduleOutcome(
        stability=stability,
        difficulty=difficulty,
        due=on + timedelta(days=interval),
        interval_days=interval,
    )


def initial_state(
    grade: Grade | int,
    params: FSRSParameters = DEFAULT_PARAMETERS,
    *,
    on: date | None = None,
    rng: random.Random | None = None,
) -> ScheduleOutcome:
    """Schedule the first review of a card."""
    grade = Grade.coerce(grade)
    return _run(FSRSCard(), grade, params, on or today(), rng)


def review(
    state: MemoryState,
    elapsed_days: float,
    grade: Grade | int,
    params: FSRSParameters = DEFAULT_PARAMETERS,
    *,
    on: date | None = None,
    rng: random.Random | None = None,
) -> ScheduleOutcome:
    """Schedule a card that has been reviewed before.

    ``elapsed_days`` is the time since ``state.last_review``, clamped to be
    non-negative. Under a day takes the same-day path; otherwise the recall
    or lapse formula applies depending on the grade.
    """
    grade = Grade.coerce(grade)
    if not math.isfinite(state.stability) or state.stability <= 0:
        raise ContractError(f"Stability must be a positive number, got {state.stability}")
    if not math.isfinite(state.difficulty):
        raise ContractError(f"Difficulty must be finite, got {state.difficulty}")

    on = on or today()
    reviewed_at = _at(on)
    fsrs_card = FSRSCard(
        state=State.Review,
        stability=state.stability,
        difficulty=min(max(state.difficulty, DIFFICULTY_MIN), DIFFICULTY_MAX),
        due=reviewed_at,
        last_review=reviewed_at - timedelta(days=max(elapsed_days, 0.0)),
    )
    return _run(fsrs_card, grade, params, on, rng)


class Scheduler:
    """Applies the memory model to cards."""

    def __init__(
        self,
        parameters: FSRSParameters | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize scheduler.

        Args:
            parameters: Memory model parameters (defaults to DEFAULT_PARAMETERS)
            rng: Random source for interval fuzz; None disables fuzz
        """
        self.parameters = parameters or DEFAULT_PARAMETERS
        self.rng = rng

    @property
    def desired_retention(self) -> float:
        return self.parameters.desired_retention

    def schedule(self, card: Card, grade: Grade | int, on: date | None = None) -> ReviewResult:
        """Grade a card and return its updated copy.

        Args:
            card: The card being reviewed
            grade: Review grade 1-4
            on: Review day (defaults to today)

        Returns:
            ReviewResult holding the updated card and scheduling details
        """
        grade = Grade.coerce(grade)
        on = on or today()
        recall = None

        if card.is_new:
            outcome = initial_state(grade, self.parameters, on=on, rng=self.rng)
        else:
            elapsed = max((on - card.last_review).days, 0)
            state = MemoryState(
                stability=card.stability,
                difficulty=card.difficulty,
                last_review=card.last_review,
            )
            recall = retrievability(state.stability, elapsed)
            outcome = review(state, elapsed, grade, self.parameters, on=on, rng=self.rng)

        # Never move a card's due date backward
        due = outcome.due
        if card.due is not None and due < card.due:
            due = card.due

        updated = card.with_schedule(
            stability=outcome.stability,
            difficulty=outcome.difficulty,
            due=due,
            last_review=on,
        )
        return ReviewResult(
            card=updated,
            grade=grade,
            reviewed_on=on,
            due=due,
            interval_days=(due - on).days,
            stability=outcome.stability,
            difficulty=outcome.difficulty,
            retrievability=recall,
        )
