"""
Configuration parsing and validation for the context layer.

Intent:
    Provide a single place to read environment variables that control which
    collaborators are wired (in-memory vs. Postgres), where persisted
    selections live and how scope summaries are shortened.

Why:
    Centralising configuration reduces drift across modules and makes
    validation and defaults explicit. Tests exercise config behaviour without
    wiring a session.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
import re
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class ContextConfig:
    env: str
    store: str  # "memory" | "db"
    database_url: Optional[str]
    selection_table: str
    head_scope_limit: int

    @property
    def is_prod_like(self) -> bool:
        return _is_prod_like(self.env)


_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in {"prod", "production", "stage", "staging"}


def _int_env(name: str, default: int, *, low: int, high: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value < low or value > high:
        raise ValueError(f"{name} out of range ({low}..{high}), got: {value}")
    return value


def load_context_config(env_file: str | None = None) -> ContextConfig:
    """
    Parse and validate context configuration from environment variables.

    Behavior:
        - `env_file` seeds missing variables from a dotenv file first;
          variables already set in the process environment win.
        - `SCHOOL_CONTEXT_STORE` selects "memory" (default) or "db"; memory
          stores are refused in production/staging.
        - The DSN comes from `SCHOOL_CONTEXT_DATABASE_URL` or `DATABASE_URL`
          and is required for the db store.
        - `SCHOOL_CONTEXT_HEAD_SCOPE_LIMIT` must be within 1..10.
    """
    if env_file:
        load_dotenv(env_file, override=False)

    env = (os.getenv("SCHOOL_CONTEXT_ENV") or "dev").strip().lower()
    store = (os.getenv("SCHOOL_CONTEXT_STORE") or "memory").strip().lower()
    if store not in {"memory", "db"}:
        raise ValueError("SCHOOL_CONTEXT_STORE must be 'memory' or 'db'")
    if store == "memory" and _is_prod_like(env):
        raise ValueError("SCHOOL_CONTEXT_STORE=memory is not allowed in production/staging environments.")

    dsn = (os.getenv("SCHOOL_CONTEXT_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip() or None
    if store == "db" and not dsn:
        raise ValueError("SCHOOL_CONTEXT_DATABASE_URL (or DATABASE_URL) is required when SCHOOL_CONTEXT_STORE=db")

    table = (os.getenv("SCHOOL_CONTEXT_SELECTION_TABLE") or "public.period_selections").strip()
    if not _TABLE_RE.match(table):
        raise ValueError(f"SCHOOL_CONTEXT_SELECTION_TABLE is not a valid identifier: {table!r}")

    return ContextConfig(
        env=env,
        store=store,
        database_url=dsn,
        selection_table=table,
        head_scope_limit=_int_env("SCHOOL_CONTEXT_HEAD_SCOPE_LIMIT", 2, low=1, high=10),
    )


__all__ = ["ContextConfig", "load_context_config"]
