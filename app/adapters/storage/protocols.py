"""Protocol definitions (ports) for the object store.

The lock manager, persistence layer and image persistence depend only on
this port, which keeps them testable against an in-memory store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int
    last_modified: datetime | None = None
    content_type: str | None = None


class ObjectStore(Protocol):
    async def get(self, key: str) -> bytes:
        """Return the object body. Raises ObjectNotFoundError when absent."""
        ...

    async def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str = "application/json",
        if_none_match: bool = False,
    ) -> None:
        """Write the object; with ``if_none_match`` raise PreconditionFailedError if it exists."""
        ...

    async def delete(self, key: str) -> None: ...

    async def list_keys(self, prefix: str) -> list[str]: ...

    async def head(self, key: str) -> ObjectInfo | None: ...

    def public_url(self, key: str) -> str: ...
