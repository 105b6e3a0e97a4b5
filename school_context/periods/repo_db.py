"""
Postgres-backed repository for academic years and terms.

Security:
- Access with a limited-role DSN so Row Level Security (RLS) scopes every
  query to the caller's institution.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Blocking calls run in the default executor; the protocol is async.
- Returns plain dicts/strings to keep resolvers independent of any ORM.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import List, Optional

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False
else:  # pragma: no cover - import errors handled above
    try:
        from psycopg.errors import UniqueViolation  # type: ignore
    except Exception:  # pragma: no cover - fallback when errors module unavailable
        UniqueViolation = None  # type: ignore

from school_context.errors import ConflictError, FetchError

_log = logging.getLogger("school_context.periods")


def _dsn() -> str:
    for candidate in (os.getenv("SCHOOL_CONTEXT_DATABASE_URL"), os.getenv("DATABASE_URL")):
        if candidate:
            return candidate
    raise RuntimeError("Database DSN unavailable for DBPeriodRepo")


class DBPeriodRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBPeriodRepo")
        self._dsn = dsn or _dsn()

    async def _run(self, code: str, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except ConflictError:
            raise
        except Exception as exc:
            _log.warning("%s: %s", code, exc.__class__.__name__)
            raise FetchError(code, cause=exc) from exc

    # --- Academic years ---------------------------------------------------------
    async def list_academic_years(self, *, institution_id: str) -> List[str]:
        return await self._run("years_fetch_failed", self._list_years_sync, institution_id)

    async def list_student_years(self, *, institution_id: str) -> List[str]:
        return await self._run("years_fetch_failed", self._list_student_years_sync, institution_id)

    async def insert_academic_year(self, *, institution_id: str, label: str) -> None:
        await self._run("year_insert_failed", self._insert_year_sync, institution_id, label)

    def _list_years_sync(self, institution_id: str) -> List[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select year from public.academic_years where school_id = %s",
                    (institution_id,),
                )
                rows = cur.fetchall()
        return [str(r[0]) for r in rows if r and r[0]]

    def _list_student_years_sync(self, institution_id: str) -> List[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select distinct academic_year from public.students "
                    "where school_id = %s and academic_year is not null",
                    (institution_id,),
                )
                rows = cur.fetchall()
        return [str(r[0]) for r in rows if r and r[0]]

    def _insert_year_sync(self, institution_id: str, label: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        "insert into public.academic_years (school_id, year) values (%s, %s)",
                        (institution_id, label),
                    )
                except Exception as exc:
                    if UniqueViolation is not None and isinstance(exc, UniqueViolation):
                        raise ConflictError("academic_year_exists") from exc
                    raise

    # --- Terms --------------------------------------------------------------------
    async def list_terms(self, *, institution_id: str, academic_year: str) -> List[dict]:
        return await self._run("terms_fetch_failed", self._list_terms_sync, institution_id, academic_year)

    def _list_terms_sync(self, institution_id: str, academic_year: str) -> List[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select id::text, school_id::text, academic_year, name,
                           to_char(start_date, 'YYYY-MM-DD'), to_char(end_date, 'YYYY-MM-DD')
                      from public.terms
                     where school_id = %s and academic_year = %s
                     order by start_date asc, id asc
                    """,
                    (institution_id, academic_year),
                )
                rows = cur.fetchall()
        return [
            {
                "id": r[0],
                "school_id": r[1],
                "academic_year": r[2],
                "name": r[3],
                "start_date": r[4],
                "end_date": r[5],
            }
            for r in rows
        ]


__all__ = ["DBPeriodRepo"]
