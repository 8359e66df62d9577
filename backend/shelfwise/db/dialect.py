"""Dialect-aware statement helpers for atomic upserts."""

from __future__ import annotations

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def dialect_name(db: Session) -> str:
    """Return the dialect name of the session's bind."""

    return db.get_bind().dialect.name


def upsert_insert(db: Session, table: Table):
    """Return an INSERT construct supporting ``ON CONFLICT`` for the bound dialect."""

    name = dialect_name(db)
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Atomic upserts are not supported on dialect {name!r}")
