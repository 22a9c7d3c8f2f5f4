"""Bookmark engine dependency for FastAPI."""

from fastapi import Request

from app.services.engine import BookmarkEngine


def get_engine(request: Request) -> BookmarkEngine:
    """Return the engine served by this application."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise RuntimeError("Bookmark engine is not initialized")
    return engine
