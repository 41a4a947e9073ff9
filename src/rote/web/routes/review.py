"""Review session routes.

A client opens a session with the decks it wants, then alternates
``GET /next`` and ``POST /grade`` until ``card`` comes back null.
"""

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from rote.core.config import Settings
from rote.core.models import CardView, SessionSummary
from rote.core.session import ReviewSession
from rote.core.storage import CardStore
from rote.web.dependencies import SessionRegistry, get_sessions, get_settings, get_store

router = APIRouter()


class SessionRequest(BaseModel):
    decks: list[str] = []
    limit: int | None = None
    new_limit: int | None = None


class SessionResponse(BaseModel):
    session_id: str
    total: int


class NextCardResponse(BaseModel):
    card: CardView | None
    remaining: int


class GradeRequest(BaseModel):
    card_id: str
    grade: int


class GradeResponse(BaseModel):
    card_id: str
    grade: int
    due: date
    interval_days: int
    stability: float
    difficulty: float
    remaining: int


@router.post("", response_model=SessionResponse, status_code=201)
async def start_session(
    request: SessionRequest,
    store: CardStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    sessions: SessionRegistry = Depends(get_sessions),
):
    """Start a session over the selected decks (all decks when none are given)."""
    session = ReviewSession(store, settings.scheduler())
    total = session.select_decks(request.decks, limit=request.limit, new_limit=request.new_limit)
    return SessionResponse(session_id=sessions.add(session), total=total)


@router.get("/{session_id}/next", response_model=NextCardResponse)
async def next_card(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    """The card to show now; null once the session is finished."""
    session = sessions.get(session_id)
    view = session.next_card()
    return NextCardResponse(card=view, remaining=session.remaining)


@router.post("/{session_id}/grade", response_model=GradeResponse)
async def grade_card(
    session_id: str,
    request: GradeRequest,
    sessions: SessionRegistry = Depends(get_sessions),
):
    """Grade the card in flight; the deck file is rewritten before this returns."""
    session = sessions.get(session_id)
    result = session.submit_grade(request.card_id, request.grade)
    return GradeResponse(
        card_id=result.card_id,
        grade=int(result.grade),
        due=result.due,
        interval_days=result.interval_days,
        stability=result.stability,
        difficulty=result.difficulty,
        remaining=session.remaining,
    )


@router.get("/{session_id}/summary", response_model=SessionSummary)
async def session_summary(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    """Grade tally for the session so far."""
    return sessions.get(session_id).summary()
