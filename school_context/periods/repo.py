"""
Record store port for the period context plus an in-memory implementation.

The protocol mirrors what the data-access collaborator must offer: years and
terms filtered by institution (terms also by year, ascending start date) and
one write to append a year. Implementations raise `FetchError` on transport
failures and `ConflictError` when a year already exists.
"""
from __future__ import annotations

from datetime import date
import itertools
from typing import Dict, List, Protocol, Tuple

from school_context.errors import ConflictError


class PeriodRepoProtocol(Protocol):
    async def list_academic_years(self, *, institution_id: str) -> List[str]:
        ...

    async def list_student_years(self, *, institution_id: str) -> List[str]:
        ...

    async def insert_academic_year(self, *, institution_id: str, label: str) -> None:
        ...

    async def list_terms(self, *, institution_id: str, academic_year: str) -> List[dict]:
        ...


class InMemoryPeriodRepo:
    """Dict-backed repo for development and tests."""

    def __init__(self) -> None:
        self.years: Dict[str, List[str]] = {}
        self.student_years: Dict[str, List[str]] = {}
        self.terms: Dict[Tuple[str, str], List[dict]] = {}
        self._ids = itertools.count(1)

    async def list_academic_years(self, *, institution_id: str) -> List[str]:
        return list(self.years.get(institution_id, []))

    async def list_student_years(self, *, institution_id: str) -> List[str]:
        return list(self.student_years.get(institution_id, []))

    async def insert_academic_year(self, *, institution_id: str, label: str) -> None:
        existing = self.years.setdefault(institution_id, [])
        if label in existing:
            raise ConflictError("academic_year_exists")
        existing.append(label)

    async def list_terms(self, *, institution_id: str, academic_year: str) -> List[dict]:
        rows = self.terms.get((institution_id, academic_year), [])
        return sorted((dict(r) for r in rows), key=lambda r: str(r["start_date"]))

    def add_term(self, institution_id: str, academic_year: str, *, name: str, start: date, end: date, term_id=None) -> dict:
        row = {
            "id": term_id if term_id is not None else next(self._ids),
            "school_id": institution_id,
            "academic_year": academic_year,
            "name": name,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
        }
        self.terms.setdefault((institution_id, academic_year), []).append(row)
        return row

    def remove_term(self, institution_id: str, academic_year: str, term_id) -> None:
        rows = self.terms.get((institution_id, academic_year), [])
        self.terms[(institution_id, academic_year)] = [r for r in rows if str(r["id"]) != str(term_id)]


__all__ = ["PeriodRepoProtocol", "InMemoryPeriodRepo"]
