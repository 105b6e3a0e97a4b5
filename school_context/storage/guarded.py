"""
Failure-tolerant view over a `SelectionStorage`.

The persisted selection is a cache, never a source of truth: a failing read
behaves like "nothing stored" and a failing write is logged and dropped.
"""
from __future__ import annotations

import logging
from typing import Optional

from school_context.errors import FetchError
from school_context.storage.keys import SelectionKey
from school_context.storage.ports import SelectionStorage

_log = logging.getLogger("school_context.storage")


class GuardedSelections:
    def __init__(self, inner: SelectionStorage) -> None:
        self.inner = inner

    async def get(self, key: SelectionKey) -> Optional[str]:
        try:
            return await self.inner.get(key)
        except FetchError as exc:
            _log.warning("reading %s failed: %s", key.slot, exc.code)
            return None

    async def set(self, key: SelectionKey, value: str) -> None:
        try:
            await self.inner.set(key, value)
        except FetchError as exc:
            _log.warning("persisting %s failed: %s", key.slot, exc.code)

    async def delete(self, key: SelectionKey) -> None:
        try:
            await self.inner.delete(key)
        except FetchError as exc:
            _log.warning("clearing %s failed: %s", key.slot, exc.code)


__all__ = ["GuardedSelections"]
