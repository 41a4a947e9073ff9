"""Drill sessions: deck selection, the due queue, and grade submission.

A session owns its queue. The presentation layer drives it with two
calls, ``next_card()`` then ``submit_grade()``, so the same session works
behind a terminal loop or a request/response web form.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from rote.core import models
from rote.core.cloze import render_answer, render_prompt
from rote.core.errors import ContractError
from rote.core.models import Card, CardView, DeckSummary, Grade, SessionState, SessionSummary
from rote.core.scheduler import ReviewResult, Scheduler
from rote.core.storage import CardStore

logger = logging.getLogger(__name__)


def due_sort_key(card: Card) -> tuple[bool, date]:
    """Never-reviewed cards first, then by ascending due date."""
    if card.is_new:
        return (False, date.min)
    return (True, card.due or date.min)


class ReviewSession:
    """One drill session over a CardStore.

    States move SELECTING_DECKS -> PRESENTING -> AWAITING_GRADE ->
    UPDATING -> PRESENTING ... -> FINISHED. The queue is fixed when decks
    are selected; cards that fall due later in the session are not added.
    """

    def __init__(
        self,
        store: CardStore,
        scheduler: Scheduler | None = None,
        today: date | None = None,
    ):
        self.store = store
        self.scheduler = scheduler or Scheduler()
        self.today = today or models.today()
        self.state = SessionState.SELECTING_DECKS
        self.selected_decks: list[str] = []
        self.results: list[ReviewResult] = []
        self.counts: dict[Grade, int] = {grade: 0 for grade in Grade}
        self.skipped: list[str] = []
        self._queue: list[str] = []
        self._position = 0

    # ------------------------------------------------------------------
    # Deck selection
    # ------------------------------------------------------------------

    def get_due_counts(self, deck_filter: Iterable[str] | None = None) -> dict[str, DeckSummary]:
        """Due and total card counts per deck, sorted by deck name.

        A card counts as due when it has never been reviewed or its due
        date is today or earlier.
        """
        wanted = set(deck_filter) if deck_filter else None
        summaries: dict[str, DeckSummary] = {}
        for card in self.store.cards:
            if wanted is not None and card.deck not in wanted:
                continue
            summary = summaries.setdefault(card.deck, DeckSummary(name=card.deck))
            summary.total += 1
            if card.is_due(self.today):
                summary.due += 1
        return dict(sorted(summaries.items()))

    def due_cards(self, decks: Iterable[str] | None = None) -> list[Card]:
        """Due cards in the given decks (all decks if none), in review order.

        Ties keep load order, since the sort is stable.
        """
        wanted = set(decks) if decks else None
        due = [
            card
            for card in self.store.cards
            if card.is_due(self.today) and (wanted is None or card.deck in wanted)
        ]
        return sorted(due, key=due_sort_key)

    def select_decks(
        self,
        decks: Iterable[str] | None = None,
        limit: int | None = None,
        new_limit: int | None = None,
    ) -> int:
        """Fix the session's queue.

        Args:
            decks: Deck names to drill; None or empty means every deck
            limit: Maximum cards in the queue
            new_limit: Maximum never-reviewed cards in the queue

        Returns:
            Number of queued cards
        """
        if self.state != SessionState.SELECTING_DECKS:
            raise ContractError("Decks have already been selected for this session")

        selected = list(dict.fromkeys(decks or []))
        unknown = set(selected) - set(self.store.decks())
        if unknown:
            raise ContractError(f"Unknown deck(s): {', '.join(sorted(unknown))}")

        cards = self.due_cards(selected)
        if new_limit is not None:
            kept_new = 0
            queued = []
            for card in cards:
                if card.is_new:
                    if kept_new >= new_limit:
                        continue
                    kept_new += 1
                queued.append(card)
            cards = queued
        if limit is not None:
            cards = cards[: max(limit, 0)]

        self.selected_decks = selected
        self._queue = [card.id for card in cards]
        self._position = 0
        self.state = SessionState.PRESENTING if self._queue else SessionState.FINISHED

        logger.info(
            "Selected %s: %d card(s) due",
            ", ".join(selected) if selected else "all decks",
            len(self._queue),
        )
        return len(self._queue)

    # ------------------------------------------------------------------
    # Review protocol
    # ------------------------------------------------------------------

    @property
    def total(self) -> int:
        return len(self._queue)

    @property
    def remaining(self) -> int:
        return len(self._queue) - self._position

    @property
    def current_card(self) -> Card | None:
        """The card being presented or awaiting a grade."""
        if self.state not in (SessionState.PRESENTING, SessionState.AWAITING_GRADE):
            return None
        return self.store.get(self._queue[self._position])

    def next_card(self) -> CardView | None:
        """Present the next card, or None once the queue is exhausted.

        Asking again before grading returns the same card. Queued cards that
        are no longer due, because another session graded them first, are
        skipped.
        """
        if self.state == SessionState.SELECTING_DECKS:
            raise ContractError("Select decks before asking for a card")
        if self.state == SessionState.FINISHED:
            return None

        card = self.current_card
        while card is None or not card.is_due(self.today):
            logger.info("Skipping %s: no longer due", self._queue[self._position])
            self.skipped.append(self._queue[self._position])
            self._position += 1
            if not self.remaining:
                self.state = SessionState.FINISHED
                return None
            card = self.current_card

        view = CardView(
            card_id=card.id,
            deck=card.deck,
            prompt=render_prompt(card.front),
            answer=render_answer(card.front, card.back),
            media=card.media,
            position=self._position + 1,
            total=self.total,
        )
        self.state = SessionState.AWAITING_GRADE
        return view

    def submit_grade(self, card_id: str, grade: Grade | int) -> ReviewResult:
        """Grade the card in flight, persist it, and advance the queue.

        If scheduling or the write fails the card stays in flight and the
        queue does not move, so the grade can be submitted again.

        Raises:
            ContractError: bad grade, no card in flight, a different card, or a
                card that was graded elsewhere since it was presented
            PersistenceError: the deck file could not be written
        """
        grade = Grade.coerce(grade)
        if self.state != SessionState.AWAITING_GRADE:
            raise ContractError("No card is awaiting a grade")
        current_id = self._queue[self._position]
        if card_id != current_id:
            raise ContractError(f"Card {card_id} is not the card under review")
        card = self.store.get(card_id)
        if card is None or not card.is_due(self.today):
            raise ContractError(f"Card {card_id} is no longer due")

        self.state = SessionState.UPDATING
        try:
            result = self.scheduler.schedule(card, grade, on=self.today)
            self.store.save(result.card)
        except Exception:
            self.state = SessionState.AWAITING_GRADE
            raise

        self.results.append(result)
        self.counts[grade] += 1
        self._position += 1
        self.state = SessionState.PRESENTING if self.remaining else SessionState.FINISHED

        logger.info(
            "Graded %s as %s; next due %s (%d day(s))",
            card_id,
            grade.name.lower(),
            result.due.isoformat(),
            result.interval_days,
        )
        return result

    def summary(self) -> SessionSummary:
        return SessionSummary(
            total=self.total,
            reviewed=len(self.results),
            skipped=len(self.skipped),
            remaining=self.remaining,
            again=self.counts[Grade.AGAIN],
            hard=self.counts[Grade.HARD],
            good=self.counts[Grade.GOOD],
            easy=self.counts[Grade.EASY],
        )
