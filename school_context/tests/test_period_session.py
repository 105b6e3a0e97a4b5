"""
PeriodSession wiring: initialization order, teardown and config selection.
"""
from __future__ import annotations

from datetime import date

import pytest

from school_context.config import ContextConfig
from school_context.errors import FetchError
from school_context.identity_access.domain import Actor, SCHOOL_ADMIN
from school_context.notifications import CollectingNotifier
from school_context.periods.repo import InMemoryPeriodRepo
from school_context.periods.session import PeriodSession, session_from_config
from school_context.storage.selection import InMemorySelectionStorage

SCHOOL = "school-1"
ACTOR = Actor(sub="admin-1", institution_id=SCHOOL, role=SCHOOL_ADMIN)


def _repo() -> InMemoryPeriodRepo:
    repo = InMemoryPeriodRepo()
    repo.years[SCHOOL] = ["2023-2024", "2024-2025"]
    repo.add_term(SCHOOL, "2023-2024", name="Spring", start=date(2024, 1, 1), end=date(2024, 6, 30))
    repo.add_term(SCHOOL, "2024-2025", name="Autumn", start=date(2024, 9, 1), end=date(2025, 1, 31))
    repo.add_term(SCHOOL, "2024-2025", name="Winter", start=date(2025, 2, 1), end=date(2025, 6, 30))
    return repo


@pytest.mark.anyio
async def test_session_resolves_year_then_term_and_follows_changes():
    async with PeriodSession(
        ACTOR,
        repo=_repo(),
        selections=InMemorySelectionStorage(),
        notifier=CollectingNotifier(),
        clock=lambda: date(2025, 3, 10),
    ) as session:
        assert session.years.active_year == "2024-2025"
        assert session.terms.term.name == "Winter"

        await session.years.set_active_year("2023-2024")
        assert session.terms.term.name == "Spring"

    # Closed sessions no longer react to year changes
    await session.years.set_active_year("2024-2025")
    assert session.terms.term.name == "Spring"


@pytest.mark.anyio
async def test_open_is_idempotent_and_resolves_once():
    repo = _repo()
    calls = []
    original = repo.list_terms

    async def counting(**kwargs):
        calls.append(kwargs["academic_year"])
        return await original(**kwargs)

    repo.list_terms = counting
    session = PeriodSession(ACTOR, repo=repo, selections=InMemorySelectionStorage(), clock=lambda: date(2025, 3, 10))

    await session.open()
    await session.open()
    await session.close()

    assert calls == ["2024-2025"]


@pytest.mark.anyio
async def test_added_year_becomes_active_with_empty_terms():
    notifier = CollectingNotifier()
    async with PeriodSession(ACTOR, repo=_repo(), selections=InMemorySelectionStorage(), notifier=notifier) as session:
        await session.years.add_year(SCHOOL, "2025-2026")

        assert session.years.active_year == "2025-2026"
        assert session.terms.terms == []
        assert session.terms.term is None
    assert notifier.items[-1].title == "Academic year added successfully!"


def test_session_from_config_memory_store():
    config = ContextConfig(
        env="dev",
        store="memory",
        database_url=None,
        selection_table="public.period_selections",
        head_scope_limit=2,
    )

    session = session_from_config(config, ACTOR)

    assert session.actor == ACTOR
    assert session.years.institution_id == SCHOOL


@pytest.mark.anyio
@pytest.mark.parametrize("institution_id", ["school-2", None])
async def test_switching_to_institution_without_years_clears_terms(institution_id):
    repo = _repo()
    storage = InMemorySelectionStorage()
    async with PeriodSession(
        ACTOR, repo=repo, selections=storage, notifier=CollectingNotifier(), clock=lambda: date(2025, 3, 10)
    ) as session:
        assert session.terms.term.name == "Winter"
        winter_id = session.terms.term.id

        await session.years.change_actor(Actor(sub="admin-2", institution_id=institution_id, role=SCHOOL_ADMIN))

        assert session.years.active_year is None
        assert session.terms.terms == []
        assert session.terms.term is None
        # Terms of the previous institution can no longer be selected
        assert await session.terms.change_term(winter_id) is None
        assert session.terms.term is None


@pytest.mark.anyio
async def test_switching_institution_with_failing_year_fetch_clears_terms():
    class _FailsForOtherSchool(InMemoryPeriodRepo):
        async def list_academic_years(self, *, institution_id):
            if institution_id != SCHOOL:
                raise FetchError("years_fetch_failed")
            return await super().list_academic_years(institution_id=institution_id)

    repo = _FailsForOtherSchool()
    repo.years[SCHOOL] = ["2024-2025"]
    repo.add_term(SCHOOL, "2024-2025", name="Autumn", start=date(2024, 9, 1), end=date(2025, 1, 31))
    notifier = CollectingNotifier()
    async with PeriodSession(ACTOR, repo=repo, selections=InMemorySelectionStorage(), notifier=notifier) as session:
        assert session.terms.term.name == "Autumn"

        await session.years.change_actor(Actor(sub="admin-2", institution_id="school-2", role=SCHOOL_ADMIN))

        assert session.years.years == []
        assert session.terms.terms == []
        assert session.terms.term is None
    assert notifier.items[-1].title == "Error fetching academic years"
