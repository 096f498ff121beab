"""
Conflict policies for the (meet event, athlete) uniqueness rules.

Assignments MERGE: a second write for the same pair updates the status in
place through INSERT ... ON CONFLICT DO UPDATE.
Results REJECT: a second insert for the same pair is refused and the caller
has to delete the existing row first.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

PG_UNIQUE_VIOLATION = "23505"


def dialect_insert(db: Session, model):
    """INSERT construct supporting on_conflict_* for the bound dialect."""
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Upsert is not supported on dialect {name!r}")


def is_unique_violation(exc: IntegrityError, constraint: str, table: str, columns: Iterable[str]) -> bool:
    """
    Does `exc` come from the named uniqueness constraint?

    PostgreSQL reports the constraint name; SQLite only lists the columns.
    """
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    diag = getattr(orig, "diag", None)
    if pgcode == PG_UNIQUE_VIOLATION and diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name == constraint

    message = str(orig if orig is not None else exc)
    if constraint in message:
        return True
    if "UNIQUE constraint failed" in message:
        return all(f"{table}.{col}" in message for col in columns)
    return pgcode == PG_UNIQUE_VIOLATION and "duplicate key value" in message.lower()
