"""Dialect helpers shared by the stores."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import TypeVar

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

T = TypeVar("T")

# Below SQLite's historical 999 bound-parameter limit.
IN_CLAUSE_CHUNK = 900


def chunked(values: Sequence[T], size: int = IN_CLAUSE_CHUNK) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    for start in range(0, len(values), size):
        yield values[start : start + size]


def upsert_statement(session: Session, table: Table, key_columns: Iterable[str]):
    """Build ``INSERT ... ON CONFLICT DO UPDATE`` for the session's dialect.

    Parameters
    ----------
    session : sqlalchemy.orm.Session
        Session whose bind decides the dialect.
    table : sqlalchemy.Table
        Target table.
    key_columns : Iterable[str]
        Conflict target columns, left untouched on update.

    Returns
    -------
    sqlalchemy.sql.dml.Insert
        Statement to execute with a list of row dicts (executemany).
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "sqlite":
        stmt = sqlite.insert(table)
    elif dialect_name == "postgresql":
        stmt = postgresql.insert(table)
    else:
        raise NotImplementedError(f"upsert not supported for dialect {dialect_name}")
    keys = list(key_columns)
    update_columns = {
        column.name: stmt.excluded[column.name]
        for column in table.columns
        if column.name not in keys
    }
    return stmt.on_conflict_do_update(index_elements=keys, set_=update_columns)
