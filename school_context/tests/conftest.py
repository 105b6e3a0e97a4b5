"""
Pytest configuration for school_context tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors).
"""
import sys
from pathlib import Path

import pytest

# Ensure the repo root and the tests directory are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "school_context" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_context_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from a dev-like environment without DSNs or toggles."""
    for name in (
        "SCHOOL_CONTEXT_ENV",
        "SCHOOL_CONTEXT_STORE",
        "SCHOOL_CONTEXT_DATABASE_URL",
        "DATABASE_URL",
        "SCHOOL_CONTEXT_SELECTION_TABLE",
        "SCHOOL_CONTEXT_HEAD_SCOPE_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
