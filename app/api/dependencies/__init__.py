"""API dependencies for FastAPI dependency injection."""

from app.api.dependencies.engine import get_engine

__all__ = ["get_engine"]
