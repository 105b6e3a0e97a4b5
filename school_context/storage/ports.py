"""
Storage ports used by the period context.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from typing import Optional, Protocol

from school_context.storage.keys import SelectionKey


class SelectionStorage(Protocol):
    """Persisted key-value storage for the active period selection.

    Intent:
        Remember the active year and the selected term per year across
        sessions. Values are plain identifiers; writes are last-writer-wins.

    Permissions:
        Only the period resolvers write here; presentation code reads through
        them.
    """

    async def get(self, key: SelectionKey) -> Optional[str]: ...

    async def set(self, key: SelectionKey, value: str) -> None: ...

    async def delete(self, key: SelectionKey) -> None: ...


__all__ = ["SelectionStorage"]
