"""
PeriodStore: available academic years and the active year of one session.

Why:
    Every dashboard query is scoped by institution and academic year. Keeping
    the year list, the active selection and its persistence in one small
    object lets the term layer subscribe to changes instead of polling.

Behavior:
    - Available years are the distinct union of saved years and the years
      recorded on the institution's students, newest first.
    - On load the persisted active year is restored; when it is missing or no
      longer available the newest year is selected and persisted. Without
      years the selection and its persisted value are cleared.
    - Fetch failures degrade to an empty list plus a user-visible
      notification; validation/conflict/permission errors of `add_year`
      propagate to the caller.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from school_context.errors import ConflictError, FetchError
from school_context.identity_access.domain import Actor
from school_context.notifications import LoggingNotifier, Notifier, error, info
from school_context.periods.models import parse_academic_year, sort_years_desc
from school_context.periods.repo import PeriodRepoProtocol
from school_context.storage.guarded import GuardedSelections
from school_context.storage.keys import make_year_key
from school_context.storage.ports import SelectionStorage

_log = logging.getLogger("school_context.periods")

PeriodListener = Callable[[Optional[str], Optional[str]], Awaitable[None]]


class PeriodStore:
    def __init__(
        self,
        repo: PeriodRepoProtocol,
        selections: SelectionStorage,
        *,
        actor: Actor,
        notifier: Notifier | None = None,
    ) -> None:
        self._repo = repo
        self._selections = GuardedSelections(selections)
        self._actor = actor
        self._notifier = notifier or LoggingNotifier()
        self._years: List[str] = []
        self._active: Optional[str] = None
        # Last (institution, year) pair listeners were told about
        self._notified: Tuple[Optional[str], Optional[str]] = (actor.institution_id, None)
        self._loading = True
        self._listeners: List[PeriodListener] = []

    # --- State ----------------------------------------------------------------
    @property
    def actor(self) -> Actor:
        return self._actor

    @property
    def institution_id(self) -> Optional[str]:
        return self._actor.institution_id

    @property
    def years(self) -> List[str]:
        return list(self._years)

    @property
    def active_year(self) -> Optional[str]:
        return self._active

    @property
    def loading(self) -> bool:
        """True while the initial fetch is outstanding."""
        return self._loading

    def subscribe(self, listener: PeriodListener) -> Callable[[], None]:
        """Register an async listener for (institution, year) changes.

        Returns a callable that removes the listener again.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # --- Queries --------------------------------------------------------------
    async def _fetch_years(self, institution_id: str) -> List[str]:
        saved = await self._repo.list_academic_years(institution_id=institution_id)
        from_students = await self._repo.list_student_years(institution_id=institution_id)
        return sort_years_desc([*from_students, *saved])

    async def list_years(self, institution_id: str | None) -> List[str]:
        """Read-through listing; empty for unknown institutions or on fetch errors."""
        if not institution_id:
            return []
        try:
            return await self._fetch_years(institution_id)
        except FetchError as exc:
            self._report_fetch_error(exc)
            return []

    # --- Lifecycle ------------------------------------------------------------
    async def load(self) -> List[str]:
        """Fetch the available years and restore or derive the active year."""
        institution_id = self.institution_id
        if not institution_id:
            self._years = []
            self._loading = False
            await self._apply_active(None)
            return []
        self._loading = True
        try:
            try:
                years = await self._fetch_years(institution_id)
            except FetchError as exc:
                self._report_fetch_error(exc)
                years = []
                candidate = self._active
            else:
                candidate = await self._derive_active(institution_id, years)
            self._years = years
        finally:
            self._loading = False
        await self._apply_active(candidate)
        return list(self._years)

    async def _derive_active(self, institution_id: str, years: List[str]) -> Optional[str]:
        """Restore the persisted year or fall back to the latest; keep storage in sync."""
        key = make_year_key(institution_id)
        persisted = await self._selections.get(key)
        candidate = self._active or persisted
        if not years:
            if persisted is not None:
                await self._selections.delete(key)
            return None
        if not candidate or candidate not in years:
            candidate = years[0]
            _log.info("active year defaulted to latest %s", candidate)
        if candidate != persisted:
            await self._selections.set(key, candidate)
        return candidate

    async def refetch(self) -> List[str]:
        return await self.load()

    async def change_actor(self, actor: Actor) -> List[str]:
        """Switch the owning identity; the active year is re-derived."""
        if actor.institution_id != self._actor.institution_id:
            self._active = None
        self._actor = actor
        return await self.load()

    # --- Commands -------------------------------------------------------------
    async def set_active_year(self, label: Optional[str]) -> None:
        """Make `label` the active year and persist it.

        Membership in `years` is not validated; callers select from the list.
        """
        institution_id = self.institution_id
        if institution_id and label:
            await self._selections.set(make_year_key(institution_id), label)
        await self._apply_active(label or None)

    async def add_year(self, institution_id: str, label: object) -> str:
        """Validate, persist and select a new academic year.

        Raises:
            ValidationError("invalid_academic_year"): malformed or non-consecutive label.
            PermissionError("forbidden"): the actor is not a school admin.
            ConflictError("academic_year_exists"): label already present.
            FetchError: the store rejected the write.
        """
        year = parse_academic_year(label)
        if not self._actor.is_school_admin:
            raise PermissionError("forbidden")
        if not institution_id:
            raise PermissionError("forbidden")
        own = institution_id == self.institution_id
        known = self._years if own and not self._loading else await self._fetch_years(institution_id)
        if year in known:
            raise ConflictError("academic_year_exists")
        await self._repo.insert_academic_year(institution_id=institution_id, label=year)
        _log.info("academic year %s added for school=%s", year, institution_id[-6:])
        if own:
            self._years = sort_years_desc([*self._years, year])
            await self.set_active_year(year)
        self._notifier.notify(info("Academic year added successfully!"))
        return year

    # --- Internals ------------------------------------------------------------
    async def _apply_active(self, label: Optional[str]) -> None:
        """Set the active year; listeners hear about every (institution, year) change."""
        self._active = label
        current = (self.institution_id, label)
        if current == self._notified:
            return
        self._notified = current
        for listener in list(self._listeners):
            await listener(*current)

    def _report_fetch_error(self, exc: FetchError) -> None:
        _log.warning("list_years failed: %s", exc.code)
        self._notifier.notify(error("Error fetching academic years", exc.code))


__all__ = ["PeriodStore", "PeriodListener"]
