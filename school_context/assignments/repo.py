"""
Authorization store port for role assignments plus an in-memory implementation.

Rows are plain dicts shaped like the `user_assignments`, `subjects` and staff
tables. `replace_assignments` and `delete_assignments` must act on all of a
user's rows at once; the Postgres adapter wraps them in one transaction.
"""
from __future__ import annotations

import itertools
from typing import Dict, List, Optional, Protocol, Sequence


class AssignmentRepoProtocol(Protocol):
    async def list_assignments(self, *, institution_id: str) -> List[dict]:
        ...

    async def list_subjects(self, *, institution_id: str) -> List[dict]:
        ...

    async def list_staff(self, *, institution_id: str) -> List[dict]:
        ...

    async def replace_assignments(self, *, institution_id: str, user_id: str, rows: Sequence[dict]) -> None:
        ...

    async def delete_assignments(self, *, institution_id: str, user_id: str) -> int:
        ...

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
        ...


class InMemoryAssignmentRepo:
    def __init__(self) -> None:
        self.assignments: List[dict] = []
        self.subjects: List[dict] = []
        # user_id -> staff row (teachers and admins merged)
        self.staff: Dict[str, dict] = {}
        self._ids = itertools.count(1)

    async def list_assignments(self, *, institution_id: str) -> List[dict]:
        return [dict(r) for r in self.assignments if r.get("school_id") == institution_id]

    async def list_subjects(self, *, institution_id: str) -> List[dict]:
        return [dict(r) for r in self.subjects if r.get("school_id") == institution_id]

    async def list_staff(self, *, institution_id: str) -> List[dict]:
        return [dict(r) for r in self.staff.values() if r.get("school_id") == institution_id]

    async def replace_assignments(self, *, institution_id: str, user_id: str, rows: Sequence[dict]) -> None:
        kept = [
            r for r in self.assignments if not (r.get("school_id") == institution_id and r.get("user_id") == user_id)
        ]
        for row in rows:
            kept.append({**row, "id": str(next(self._ids)), "school_id": institution_id, "user_id": user_id})
        self.assignments = kept

    async def delete_assignments(self, *, institution_id: str, user_id: str) -> int:
        before = len(self.assignments)
        self.assignments = [
            r for r in self.assignments if not (r.get("school_id") == institution_id and r.get("user_id") == user_id)
        ]
        return before - len(self.assignments)

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
        row = self.staff.setdefault(user_id, {"user_id": user_id, "school_id": institution_id})
        row.update({"role": role, "secondary_role": secondary_role})
        if name is not None:
            row["name"] = name
        if email is not None:
            row["email"] = email


__all__ = ["AssignmentRepoProtocol", "InMemoryAssignmentRepo"]
