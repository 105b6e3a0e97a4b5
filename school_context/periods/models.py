"""
Reporting period value types: academic years and terms.

Academic years are labels of the form ``YYYY-YYYY`` whose end year directly
follows the start year (``2024-2025``). Terms are bounded sub-periods of one
year, ordered by start date.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import re
from typing import Any, Mapping

from school_context.errors import ValidationError

_YEAR_RE = re.compile(r"^(\d{4})-(\d{4})$")


def parse_academic_year(label: object) -> str:
    """Return the normalized year label or raise `ValidationError`.

    Leading/trailing whitespace is ignored; anything else must match
    ``YYYY-YYYY`` with consecutive years.
    """
    if not isinstance(label, str):
        raise ValidationError("invalid_academic_year")
    trimmed = label.strip()
    m = _YEAR_RE.match(trimmed)
    if not m:
        raise ValidationError("invalid_academic_year")
    start, end = int(m.group(1)), int(m.group(2))
    if end != start + 1:
        raise ValidationError("invalid_academic_year")
    return trimmed


def is_academic_year(label: object) -> bool:
    try:
        parse_academic_year(label)
    except ValidationError:
        return False
    return True


def sort_years_desc(labels) -> list[str]:
    """Distinct labels, newest first."""
    return sorted({str(y) for y in labels if y}, reverse=True)


def _as_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            # Accept both plain dates and full ISO timestamps
            return datetime.fromisoformat(value.strip()).date()
        except ValueError as exc:
            raise ValidationError("invalid_term_dates") from exc
    raise ValidationError("invalid_term_dates")


@dataclass(frozen=True)
class Term:
    id: str
    institution_id: str
    academic_year: str
    name: str
    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        """Inclusive at both ends."""
        return self.start_date <= day <= self.end_date


def term_from_row(row: Mapping[str, Any]) -> Term:
    """Map a store row to a `Term`, enforcing ``start_date <= end_date``."""
    start = _as_date(row.get("start_date"))
    end = _as_date(row.get("end_date"))
    if start > end:
        raise ValidationError("invalid_term_dates")
    return Term(
        id=str(row.get("id")),
        institution_id=str(row.get("school_id") or row.get("institution_id") or ""),
        academic_year=str(row.get("academic_year") or ""),
        name=str(row.get("name") or ""),
        start_date=start,
        end_date=end,
    )


__all__ = [
    "parse_academic_year",
    "is_academic_year",
    "sort_years_desc",
    "Term",
    "term_from_row",
]
