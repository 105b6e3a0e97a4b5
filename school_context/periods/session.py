"""
Per-session wiring of the period context.

Why:
    Year and term state used to live in process-wide providers reachable from
    anywhere. Here a `PeriodSession` owns them explicitly, is passed by
    reference to consumers, initializes in a fixed order
    (identity -> period -> term) and tears its subscriptions down on close.

Usage:
    async with PeriodSession(actor, repo=repo, selections=storage) as session:
        session.years.active_year, session.terms.term
"""
from __future__ import annotations

from datetime import date
import logging
from typing import Callable, Optional

from school_context.config import ContextConfig
from school_context.identity_access.domain import Actor
from school_context.notifications import Notifier
from school_context.periods.repo import InMemoryPeriodRepo, PeriodRepoProtocol
from school_context.periods.terms import TermResolver
from school_context.periods.years import PeriodStore
from school_context.storage.ports import SelectionStorage
from school_context.storage.selection import InMemorySelectionStorage

_log = logging.getLogger("school_context.periods")


class PeriodSession:
    def __init__(
        self,
        actor: Actor,
        *,
        repo: PeriodRepoProtocol,
        selections: SelectionStorage,
        notifier: Notifier | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self.actor = actor
        self.years = PeriodStore(repo, selections, actor=actor, notifier=notifier)
        self.terms = TermResolver(self.years, repo, selections, notifier=notifier, clock=clock)
        self._open = False

    async def open(self) -> "PeriodSession":
        if self._open:
            return self
        await self.years.load()
        # Subscribe after the initial load so the first resolution runs once
        self.terms.attach()
        await self.terms.resolve()
        self._open = True
        _log.debug("period session opened for sub=%s", (self.actor.sub or "")[-6:])
        return self

    async def close(self) -> None:
        self.terms.detach()
        self._open = False

    async def __aenter__(self) -> "PeriodSession":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def session_from_config(
    config: ContextConfig,
    actor: Actor,
    *,
    notifier: Notifier | None = None,
    repo: Optional[PeriodRepoProtocol] = None,
) -> PeriodSession:
    """Wire a session with in-memory or Postgres collaborators per config."""
    if config.store == "db":
        from school_context.periods.repo_db import DBPeriodRepo
        from school_context.storage.selection_db import DBSelectionStorage

        return PeriodSession(
            actor,
            repo=repo or DBPeriodRepo(config.database_url),
            selections=DBSelectionStorage(config.database_url, table=config.selection_table),
            notifier=notifier,
        )
    return PeriodSession(
        actor,
        repo=repo or InMemoryPeriodRepo(),
        selections=InMemorySelectionStorage(),
        notifier=notifier,
    )


__all__ = ["PeriodSession", "session_from_config"]
