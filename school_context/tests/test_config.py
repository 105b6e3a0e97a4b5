"""
Configuration parsing: defaults, store selection and validation errors.
"""
from __future__ import annotations

import pytest

from school_context.config import load_context_config


def test_defaults_use_memory_store():
    cfg = load_context_config()

    assert cfg.env == "dev"
    assert cfg.store == "memory"
    assert cfg.database_url is None
    assert cfg.selection_table == "public.period_selections"
    assert cfg.head_scope_limit == 2
    assert cfg.is_prod_like is False


def test_db_store_requires_dsn(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SCHOOL_CONTEXT_STORE", "db")
    with pytest.raises(ValueError):
        load_context_config()

    monkeypatch.setenv("DATABASE_URL", "postgresql://app@localhost/school")
    cfg = load_context_config()
    assert cfg.database_url == "postgresql://app@localhost/school"

    monkeypatch.setenv("SCHOOL_CONTEXT_DATABASE_URL", "postgresql://ctx@localhost/school")
    assert load_context_config().database_url == "postgresql://ctx@localhost/school"


def test_memory_store_refused_in_prod(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SCHOOL_CONTEXT_ENV", "Production")
    with pytest.raises(ValueError) as ei:
        load_context_config()
    assert "not allowed" in str(ei.value)


@pytest.mark.parametrize("raw", ["0", "11", "two"])
def test_head_scope_limit_is_validated(monkeypatch: pytest.MonkeyPatch, raw):
    monkeypatch.setenv("SCHOOL_CONTEXT_HEAD_SCOPE_LIMIT", raw)
    with pytest.raises(ValueError):
        load_context_config()


def test_invalid_store_and_table_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SCHOOL_CONTEXT_STORE", "redis")
    with pytest.raises(ValueError):
        load_context_config()

    monkeypatch.delenv("SCHOOL_CONTEXT_STORE")
    monkeypatch.setenv("SCHOOL_CONTEXT_SELECTION_TABLE", "public.sel; drop table x")
    with pytest.raises(ValueError):
        load_context_config()


def test_env_file_seeds_missing_values_only(monkeypatch: pytest.MonkeyPatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("SCHOOL_CONTEXT_HEAD_SCOPE_LIMIT=4\nSCHOOL_CONTEXT_SELECTION_TABLE=ctx.selections\n")
    monkeypatch.setenv("SCHOOL_CONTEXT_SELECTION_TABLE", "public.period_selections")
    # load_dotenv writes into os.environ; register for cleanup
    monkeypatch.setenv("SCHOOL_CONTEXT_HEAD_SCOPE_LIMIT", "")
    monkeypatch.delenv("SCHOOL_CONTEXT_HEAD_SCOPE_LIMIT")

    cfg = load_context_config(str(env_file))

    assert cfg.head_scope_limit == 4
    assert cfg.selection_table == "public.period_selections"
