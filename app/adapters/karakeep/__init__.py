"""Karakeep adapter: the upstream source of truth for bookmarks."""

from app.adapters.karakeep.client import KarakeepClient
from app.adapters.karakeep.normalize import to_bookmark, to_bookmarks

__all__ = ["KarakeepClient", "to_bookmark", "to_bookmarks"]
