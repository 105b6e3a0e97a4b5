"""
Composite keys for persisted period selections.

Why:
    A browser-local store keyed by free-form strings (``term_2024-2025``)
    collides as soon as two institutions share a device. Keys here are always
    scoped by institution; the slot keeps the familiar ``term_<year>`` shape so
    rows stay human-readable.

Conventions:
    - Active academic year: slot ``academic_year``
    - Selected term for a year: slot ``term_{year}``

Security:
    - Slot segments are sanitized to [A-Za-z0-9._-]; anything else collapses
      to ``-``.
"""
from __future__ import annotations

from dataclasses import dataclass
import re
import unicodedata

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")

ACADEMIC_YEAR_SLOT = "academic_year"


def _sanitize_segment(value: str, *, fallback: str = "x") -> str:
    value = value or ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized = _SEGMENT_RE.sub("-", ascii_value).strip("-_.")
    return sanitized or fallback


@dataclass(frozen=True)
class SelectionKey:
    institution_id: str
    slot: str


def make_year_key(institution_id: str) -> SelectionKey:
    """Key for the institution's active academic year."""
    return SelectionKey(institution_id=str(institution_id), slot=ACADEMIC_YEAR_SLOT)


def make_term_key(institution_id: str, academic_year: str) -> SelectionKey:
    """Key for the selected term of one academic year.

    Returns: SelectionKey(institution_id, "term_{year}")
    """
    year = _sanitize_segment(academic_year, fallback="year")
    return SelectionKey(institution_id=str(institution_id), slot=f"term_{year}")


__all__ = ["ACADEMIC_YEAR_SLOT", "SelectionKey", "make_year_key", "make_term_key"]
