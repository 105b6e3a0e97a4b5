"""
Postgres-backed repository for role assignments.

Tables:
    public.user_assignments (id, school_id, user_id, major, group_desc,
                             class_desc, section_name, subject_id)
    public.subjects (id, school_id, name)
    public.teachers (user_id, school_id, name, email)
    public.admins (user_id unique, school_id, name, email, role,
                   secondary_role, status)

Design:
- Each call opens a short-lived psycopg3 connection in the default executor.
- Replacing a user's rows (delete + insert) runs in one transaction so a
  failed insert never leaves the member without any scope.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import List, Optional, Sequence

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from school_context.errors import FetchError

_log = logging.getLogger("school_context.assignments")

_ASSIGNMENT_COLUMNS = ("id", "school_id", "user_id", "major", "group_desc", "class_desc", "section_name", "subject_id")
_SCOPE_COLUMNS = ("major", "group_desc", "class_desc", "section_name", "subject_id")


def _dsn() -> str:
    for candidate in (os.getenv("SCHOOL_CONTEXT_DATABASE_URL"), os.getenv("DATABASE_URL")):
        if candidate:
            return candidate
    raise RuntimeError("Database DSN unavailable for DBAssignmentRepo")


class DBAssignmentRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBAssignmentRepo")
        self._dsn = dsn or _dsn()

    async def _run(self, code: str, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except Exception as exc:
            _log.warning("%s: %s", code, exc.__class__.__name__)
            raise FetchError(code, cause=exc) from exc

    # --- Reads ----------------------------------------------------------------
    async def list_assignments(self, *, institution_id: str) -> List[dict]:
        return await self._run("assignments_fetch_failed", self._list_assignments_sync, institution_id)

    async def list_subjects(self, *, institution_id: str) -> List[dict]:
        return await self._run("assignments_fetch_failed", self._list_subjects_sync, institution_id)

    async def list_staff(self, *, institution_id: str) -> List[dict]:
        return await self._run("assignments_fetch_failed", self._list_staff_sync, institution_id)

    def _list_assignments_sync(self, institution_id: str) -> List[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select id::text, school_id::text, user_id::text, major, group_desc,
                           class_desc, section_name, subject_id::text
                      from public.user_assignments
                     where school_id = %s
                     order by id
                    """,
                    (institution_id,),
                )
                rows = cur.fetchall()
        return [dict(zip(_ASSIGNMENT_COLUMNS, r)) for r in rows]

    def _list_subjects_sync(self, institution_id: str) -> List[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("select id::text, name from public.subjects where school_id = %s", (institution_id,))
                rows = cur.fetchall()
        return [{"id": r[0], "name": r[1], "school_id": institution_id} for r in rows]

    def _list_staff_sync(self, institution_id: str) -> List[dict]:
        staff: dict[str, dict] = {}
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select user_id::text, name, email from public.teachers where school_id = %s and user_id is not null",
                    (institution_id,),
                )
                for user_id, name, email in cur.fetchall():
                    staff[user_id] = {"user_id": user_id, "name": name, "email": email, "role": "teacher"}
                # Admin rows carry the effective role and override teacher rows
                cur.execute(
                    "select user_id::text, name, email, role, secondary_role from public.admins "
                    "where school_id = %s and user_id is not null",
                    (institution_id,),
                )
                for user_id, name, email, role, secondary_role in cur.fetchall():
                    staff[user_id] = {
                        "user_id": user_id,
                        "name": name,
                        "email": email,
                        "role": role,
                        "secondary_role": secondary_role,
                    }
        return list(staff.values())

    # --- Writes ---------------------------------------------------------------
    async def replace_assignments(self, *, institution_id: str, user_id: str, rows: Sequence[dict]) -> None:
        await self._run("assignments_save_failed", self._replace_sync, institution_id, user_id, list(rows))

    async def delete_assignments(self, *, institution_id: str, user_id: str) -> int:
        return await self._run("assignments_delete_failed", self._delete_sync, institution_id, user_id)

    async def upsert_staff_role(
        self,
        *,
        institution_id: str,
        user_id: str,
        role: str,
        secondary_role: Optional[str],
        name: Optional[str],
        email: Optional[str],
    ) -> None:
        await self._run(
            "staff_role_save_failed",
            self._upsert_staff_sync,
            institution_id,
            user_id,
            role,
            secondary_role,
            name,
            email,
        )

    def _replace_sync(self, institution_id: str, user_id: str, rows: List[dict]) -> None:
        # Non-autocommit connection: commits on clean exit, rolls back on error
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "delete from public.user_assignments where school_id = %s and user_id = %s",
                    (institution_id, user_id),
                )
                for row in rows:
                    cur.execute(
                        "insert into public.user_assignments "
                        "(school_id, user_id, major, group_desc, class_desc, section_name, subject_id) "
                        "values (%s, %s, %s, %s, %s, %s, %s)",
                        (institution_id, user_id, *(row.get(c) for c in _SCOPE_COLUMNS)),
                    )

    def _delete_sync(self, institution_id: str, user_id: str) -> int:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "delete from public.user_assignments where school_id = %s and user_id = %s",
                    (institution_id, user_id),
                )
                return int(cur.rowcount or 0)

    def _upsert_staff_sync(
        self,
        institution_id: str,
        user_id: str,
        role: str,
        secondary_role: Optional[str],
        name: Optional[str],
        email: Optional[str],
    ) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    insert into public.admins (user_id, school_id, role, secondary_role, name, email, status)
                    values (%s, %s, %s, %s, %s, %s, 'Active')
                    on conflict (user_id) do update
                       set role = excluded.role,
                           secondary_role = excluded.secondary_role,
                           name = coalesce(excluded.name, public.admins.name),
                           email = coalesce(excluded.email, public.admins.email)
                    """,
                    (user_id, institution_id, role, secondary_role, name, email),
                )


__all__ = ["DBAssignmentRepo"]
