"""Deck overview routes."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from rote.core.config import Settings
from rote.core.models import Card, DeckSummary, today
from rote.core.session import ReviewSession
from rote.core.storage import CardStore
from rote.web.dependencies import get_settings, get_store

router = APIRouter()


class DecksResponse(BaseModel):
    decks: list[DeckSummary]
    errors: list[str] = []


class DeckCard(BaseModel):
    card_id: str
    front: str
    back: str
    media: str = ""
    status: str  # NEW, DUE or the next review date
    due: date | None = None


class DeckResponse(BaseModel):
    name: str
    due: int
    total: int
    cards: list[DeckCard]


def _status(card: Card, on: date) -> str:
    if card.is_new:
        return "NEW"
    if card.is_due(on):
        return "DUE"
    return card.due.isoformat()


@router.get("", response_model=DecksResponse)
async def list_decks(
    deck: list[str] | None = Query(default=None),
    store: CardStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Due and total counts per deck, optionally restricted to ``?deck=`` names."""
    session = ReviewSession(store, settings.scheduler())
    counts = session.get_due_counts(deck)
    return DecksResponse(
        decks=list(counts.values()),
        errors=[str(error) for error in store.errors],
    )


@router.get("/{name}", response_model=DeckResponse)
async def deck_detail(name: str, store: CardStore = Depends(get_store)):
    """Every card in one deck with its review status."""
    on = today()
    cards = [card for card in store.cards if card.deck == name]
    if not cards:
        raise HTTPException(status_code=404, detail=f"Unknown deck: {name}")

    return DeckResponse(
        name=name,
        due=sum(1 for card in cards if card.is_due(on)),
        total=len(cards),
        cards=[
            DeckCard(
                card_id=card.id,
                front=card.front,
                back=card.back,
                media=card.media,
                status=_status(card, on),
                due=card.due,
            )
            for card in cards
        ],
    )
