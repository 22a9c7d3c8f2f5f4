"""
API route handlers.
"""

from . import bookmarks

__all__ = ["bookmarks"]
