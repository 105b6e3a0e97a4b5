"""
In-memory selection storage for development and tests.

Why: Mirrors the persisted storage contract without a database. For
production, use `DBSelectionStorage` (see `selection_db.py`).
"""
from __future__ import annotations

from typing import Dict, Optional

from school_context.storage.keys import SelectionKey


class InMemorySelectionStorage:
    def __init__(self, initial: Optional[Dict[SelectionKey, str]] = None):
        self._data: Dict[SelectionKey, str] = dict(initial or {})
        # Observed by idempotency tests
        self.writes = 0
        self.deletes = 0

    async def get(self, key: SelectionKey) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: SelectionKey, value: str) -> None:
        self.writes += 1
        self._data[key] = str(value)

    async def delete(self, key: SelectionKey) -> None:
        self.deletes += 1
        self._data.pop(key, None)

    def snapshot(self) -> Dict[SelectionKey, str]:
        return dict(self._data)
