"""Pytest bootstrap helpers shared by all test domains."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _append_repo_root() -> None:
    """Ensure repository root is present in import path."""
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_text = str(repo_root)
    if repo_root_text in sys.path:
        return
    sys.path.insert(0, repo_root_text)


_append_repo_root()

from sqlalchemy import event  # noqa: E402

from plotguard.storage import Stores, open_stores  # noqa: E402


class StatementCounter:
    """Count SQL statements sent to the database by one engine."""

    def __init__(self) -> None:
        self.statements: list[str] = []

    def __call__(self, conn, cursor, statement, parameters, context, executemany) -> None:
        self.statements.append(statement)

    @property
    def count(self) -> int:
        return len(self.statements)

    def matching(self, prefix: str) -> list[str]:
        """Return counted statements starting with ``prefix`` (case-insensitive)."""
        return [s for s in self.statements if s.lstrip().upper().startswith(prefix.upper())]

    def reset(self) -> None:
        self.statements.clear()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def stores() -> Stores:
    """Fresh in-memory SQLite stores."""
    bundle = open_stores("sqlite://")
    yield bundle
    bundle.engine.dispose()


@pytest.fixture
def statement_counter(stores: Stores) -> StatementCounter:
    counter = StatementCounter()
    event.listen(stores.engine, "before_cursor_execute", counter)
    yield counter
    event.remove(stores.engine, "before_cursor_execute", counter)
