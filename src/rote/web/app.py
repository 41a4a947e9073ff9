"""FastAPI application for rote."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from rote.core.errors import ContractError, PersistenceError
from rote.web.routes import decks_router, review_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="rote",
        description="Spaced repetition drills over plain CSV decks",
        version="0.1.0",
    )

    app.include_router(decks_router, prefix="/decks", tags=["decks"])
    app.include_router(review_router, prefix="/sessions", tags=["sessions"])

    @app.exception_handler(ContractError)
    async def contract_error(request: Request, exc: ContractError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/")
    async def home():
        """Redirect to the deck overview."""
        return RedirectResponse(url="/decks")

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


# Create the app instance for uvicorn
app = create_app()
