"""
Database-backed SelectionStorage for production use (Postgres/Supabase).

Why: Browser-local selections do not follow a staff member across devices and
are not scoped per institution. This store persists the active year and the
per-year term selection in Postgres, keyed by ``(institution_id, slot)``.

Table (expected shape):
    create table public.period_selections (
        institution_id text not null,
        slot text not null,
        value text not null,
        updated_at timestamptz not null default now(),
        primary key (institution_id, slot)
    );

Note: This module uses psycopg3 (blocking client). Calls run in the default
executor so the async resolvers never block the event loop. Tests can continue
to use the in-memory store.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Optional

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from school_context.errors import FetchError
from school_context.storage.keys import SelectionKey

_log = logging.getLogger("school_context.storage")

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


class DBSelectionStorage:
    """Postgres-backed selection storage.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string.
    table:
        Fully qualified table name. Defaults to `public.period_selections`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.period_selections") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSelectionStorage")
        self._dsn = dsn or os.getenv("SCHOOL_CONTEXT_DATABASE_URL") or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBSelectionStorage")
        # Validate table identifier early; it is interpolated into statements
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

    async def get(self, key: SelectionKey) -> Optional[str]:
        return await self._run(self._get_sync, key)

    async def set(self, key: SelectionKey, value: str) -> None:
        await self._run(self._set_sync, key, str(value))

    async def delete(self, key: SelectionKey) -> None:
        await self._run(self._delete_sync, key)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except FetchError:
            raise
        except Exception as exc:
            _log.warning("selection storage %s failed: %s", fn.__name__.strip("_"), exc.__class__.__name__)
            raise FetchError("selection_storage_failed", cause=exc) from exc

    def _get_sync(self, key: SelectionKey) -> Optional[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select value from {self._table} where institution_id = %s and slot = %s",
                    (key.institution_id, key.slot),
                )
                row = cur.fetchone()
        return str(row[0]) if row else None

    def _set_sync(self, key: SelectionKey, value: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {self._table} (institution_id, slot, value) values (%s, %s, %s) "
                    "on conflict (institution_id, slot) do update set value = excluded.value, updated_at = now()",
                    (key.institution_id, key.slot, value),
                )

    def _delete_sync(self, key: SelectionKey) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"delete from {self._table} where institution_id = %s and slot = %s",
                    (key.institution_id, key.slot),
                )
