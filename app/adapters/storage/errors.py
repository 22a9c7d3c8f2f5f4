"""Object store error types.

Adapters translate provider-specific failures into these three classes so
callers can tell "absent" and "lost the race" apart from real faults.
"""

from __future__ import annotations


class ObjectStoreError(Exception):
    """Any object store failure that is not one of the subclasses below."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class ObjectNotFoundError(ObjectStoreError):
    """The requested key does not exist."""


class PreconditionFailedError(ObjectStoreError):
    """A conditional write lost: the key already exists."""
