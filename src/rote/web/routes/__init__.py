"""Web routes for rote."""

from rote.web.routes.decks import router as decks_router
from rote.web.routes.review import router as review_router

__all__ = ["decks_router", "review_router"]
