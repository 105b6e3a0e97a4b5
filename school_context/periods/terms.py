"""
TermResolver: the term list of the active year and the one "current" term.

Resolution precedence (load-bearing, keep the order):
    a. A persisted selection for this year whose term still exists.
    b. The single term whose [start_date, end_date] contains today.
    c. The earliest term (ascending start date).
    d. Nothing: selection cleared, stale persisted value removed.

Selections made through (b) or (c) are persisted immediately, keyed by
institution and year, so later loads reuse them via (a). An explicit
`change_term` bypasses (b)/(c). It is a no-op for unknown ids and while
the fetched list still belongs to a previous year or institution.

Concurrency:
    Each resolution captures a generation number plus the (institution, year)
    it was triggered for. Results arriving after a newer resolution started,
    or after the active year moved on, are discarded without touching state.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from school_context.errors import FetchError, ValidationError
from school_context.notifications import LoggingNotifier, Notifier, error
from school_context.periods.models import Term, term_from_row
from school_context.periods.repo import PeriodRepoProtocol
from school_context.periods.years import PeriodStore
from school_context.storage.guarded import GuardedSelections
from school_context.storage.keys import make_term_key
from school_context.storage.ports import SelectionStorage

_log = logging.getLogger("school_context.periods")

PERSISTED = "persisted"
CURRENT = "current"
EARLIEST = "earliest"
NONE = "none"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def pick_term(terms: Sequence[Term], persisted_id: Optional[str], today: date) -> Tuple[Optional[Term], str]:
    """Apply the precedence rules to an ascending term list.

    Returns the selected term (or None) and the rule that produced it.
    """
    if persisted_id is not None:
        for t in terms:
            if t.id == str(persisted_id):
                return t, PERSISTED
    active = [t for t in terms if t.contains(today)]
    if len(active) == 1:
        return active[0], CURRENT
    if terms:
        return terms[0], EARLIEST
    return None, NONE


def parse_terms(rows: Sequence[dict]) -> List[Term]:
    """Parse store rows, skipping rows with inverted or unreadable dates."""
    out: List[Term] = []
    for row in rows:
        try:
            out.append(term_from_row(row))
        except ValidationError:
            _log.warning("skipping term id=%s: invalid dates", str(row.get("id"))[-6:])
    out.sort(key=lambda t: t.start_date)
    return out


class TermResolver:
    def __init__(
        self,
        periods: PeriodStore,
        repo: PeriodRepoProtocol,
        selections: SelectionStorage,
        *,
        notifier: Notifier | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._periods = periods
        self._repo = repo
        self._selections = GuardedSelections(selections)
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock or _utc_today
        self._terms: List[Term] = []
        # (institution, year) the fetched term list belongs to
        self._terms_for: Optional[Tuple[str, str]] = None
        self._term: Optional[Term] = None
        self._loading = True
        self._generation = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def terms(self) -> List[Term]:
        return list(self._terms)

    @property
    def term(self) -> Optional[Term]:
        return self._term

    @property
    def loading(self) -> bool:
        return self._loading

    # --- Wiring ---------------------------------------------------------------
    def attach(self) -> None:
        """Re-resolve whenever the institution or the active year changes."""
        if self._unsubscribe is None:
            self._unsubscribe = self._periods.subscribe(self._on_period_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_period_change(self, institution_id: Optional[str], year: Optional[str]) -> None:
        await self.resolve()

    # --- Resolution -----------------------------------------------------------
    def _is_stale(self, generation: int, institution_id: str, year: str) -> bool:
        return (
            generation != self._generation
            or self._periods.institution_id != institution_id
            or self._periods.active_year != year
        )

    async def resolve(self) -> Optional[Term]:
        """Fetch the active year's terms and select one by precedence."""
        self._generation += 1
        generation = self._generation
        institution_id = self._periods.institution_id
        year = self._periods.active_year
        if not institution_id or not year:
            self._terms = []
            self._terms_for = None
            self._term = None
            self._loading = False
            return None

        self._loading = True
        key = make_term_key(institution_id, year)
        try:
            rows = await self._repo.list_terms(institution_id=institution_id, academic_year=year)
        except FetchError as exc:
            if self._is_stale(generation, institution_id, year):
                _log.debug("discarding failed term fetch for stale year %s", year)
                return self._term
            _log.warning("list_terms failed: %s", exc.code)
            self._notifier.notify(error("Error", "Could not fetch terms."))
            self._terms = []
            self._terms_for = None
            self._term = None
            self._loading = False
            return None

        persisted = await self._selections.get(key)
        if self._is_stale(generation, institution_id, year):
            _log.debug("discarding term fetch for stale year %s", year)
            return self._term

        terms = parse_terms(rows)
        selected, source = pick_term(terms, persisted, self._clock())
        self._terms = terms
        self._terms_for = (institution_id, year)
        self._term = selected
        self._loading = False

        if source in (CURRENT, EARLIEST) and selected is not None:
            _log.info("term %s selected for %s by %s rule", selected.id, year, source)
            await self._selections.set(key, selected.id)
        elif source == NONE and persisted is not None:
            await self._selections.delete(key)
        return selected

    async def refetch(self) -> Optional[Term]:
        return await self.resolve()

    async def change_term(self, term_id: object) -> Optional[Term]:
        """Select a term of the fetched set explicitly and persist it.

        Unknown ids leave the selection untouched and raise nothing. While the
        fetched list still belongs to a previous year or institution the call
        is ignored as well.
        """
        wanted = str(term_id)
        institution_id = self._periods.institution_id
        year = self._periods.active_year
        if not institution_id or not year or self._terms_for != (institution_id, year):
            _log.debug("change_term ignored while terms of %s are not loaded", year)
            return self._term
        match = next((t for t in self._terms if t.id == wanted), None)
        if match is None:
            _log.debug("change_term ignored unknown id %s", wanted[-6:])
            return self._term
        self._term = match
        await self._selections.set(make_term_key(institution_id, year), match.id)
        return match


__all__ = ["TermResolver", "pick_term", "parse_terms", "PERSISTED", "CURRENT", "EARLIEST", "NONE"]
