"""Dependency injection for FastAPI routes."""

import logging
from functools import lru_cache
from uuid import uuid4

from fastapi import HTTPException

from rote.core.config import Settings
from rote.core.models import SessionState
from rote.core.session import ReviewSession
from rote.core.storage import CardStore

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-process review sessions keyed by id.

    Holds at most ``max_sessions``. When full, finished sessions are dropped
    first, then the oldest ones.
    """

    def __init__(self, max_sessions: int = 64):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_sessions = max_sessions
        self._sessions: dict[str, ReviewSession] = {}

    def add(self, session: ReviewSession) -> str:
        if len(self._sessions) >= self.max_sessions:
            self._evict()
        session_id = str(uuid4())
        self._sessions[session_id] = session
        return session_id

    def get(self, session_id: str) -> ReviewSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
        return session

    def _evict(self) -> None:
        for session_id, session in list(self._sessions.items()):
            if session.state == SessionState.FINISHED:
                del self._sessions[session_id]
                logger.debug("Dropped finished session %s", session_id)

        # dicts keep insertion order, so the first key is the oldest session
        while len(self._sessions) >= self.max_sessions:
            session_id = next(iter(self._sessions))
            del self._sessions[session_id]
            logger.info("Dropped session %s to stay under %d", session_id, self.max_sessions)

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache
def get_settings() -> Settings:
    """Get settings from the environment (singleton)."""
    return Settings.from_env()


@lru_cache
def get_store() -> CardStore:
    """Get the card store for ROTE_PATHS (singleton)."""
    settings = get_settings()
    return CardStore.open(settings.paths, write_attempts=settings.write_attempts)


@lru_cache
def get_sessions() -> SessionRegistry:
    """Get the session registry (singleton)."""
    return SessionRegistry()
