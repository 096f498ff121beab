"""
Row authorization policy.

Every service reads and writes through these predicates. The requester's role
is always re-read from their own Profile row at check time; token claims and
request bodies are never trusted for it.

Two shapes are provided:
- allow(db, op, collection, row, principal_id) -> bool for single rows
- scope_*(query, ...) filters for collection reads, so denied rows are simply
  absent from the result (no existence leaks)

On PostgreSQL migration 002 installs equivalent row-level security policies.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy import exists
from sqlalchemy.orm import Query, Session

from core.exceptions import ForbiddenError
from models import (
    Profile,
    MessageThread,
    MessageThreadParticipant,
    Message,
    STAFF_ROLES,
)

logger = logging.getLogger(__name__)


class Op(str, Enum):
    READ = "read"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class Collection(str, Enum):
    PROFILE = "profile"
    THREAD = "message_thread"
    PARTICIPANT = "message_thread_participant"
    MESSAGE = "message"
    MEET = "meet"
    EVENT = "event"
    MEET_EVENT = "meet_event"
    ANNOUNCEMENT = "announcement"
    ASSIGNMENT = "assignment"
    RESULT = "result"
    EMERGENCY_CONTACT = "emergency_contact"
    MEDICATION = "athlete_medication"


def resolve_role(db: Session, principal_id: Optional[UUID]) -> str:
    """Role of the requester, read from their own profile row ('athlete' when absent)."""
    if principal_id is None:
        return "athlete"
    role = db.query(Profile.role).filter(Profile.user_id == principal_id).scalar()
    return role or "athlete"


def is_staff(db: Session, principal_id: Optional[UUID]) -> bool:
    return resolve_role(db, principal_id) in STAFF_ROLES


def is_participant(db: Session, thread_id: UUID, principal_id: UUID) -> bool:
    return db.query(
        exists().where(
            MessageThreadParticipant.thread_id == thread_id,
            MessageThreadParticipant.user_id == principal_id,
        )
    ).scalar()


# --- predicates ------------------------------------------------------------

def _self_or_staff(db: Session, owner_id: UUID, principal_id: UUID) -> bool:
    return owner_id == principal_id or is_staff(db, principal_id)


def _profile(db, op, row, principal_id) -> bool:
    if op in (Op.READ, Op.UPDATE):
        return _self_or_staff(db, row.user_id, principal_id)
    # Profiles are created by the account service and never deleted.
    return False


def _thread(db, op, row, principal_id) -> bool:
    if op == Op.READ:
        return is_participant(db, row.id, principal_id)
    if op == Op.INSERT:
        return row.created_by == principal_id and is_staff(db, principal_id)
    return False


def _participant(db, op, row, principal_id) -> bool:
    if op == Op.READ:
        return is_participant(db, row.thread_id, principal_id)
    if op == Op.INSERT:
        # Only the staff creator of the thread adds people, and only while
        # creating it; nobody can add themselves to someone else's thread.
        thread = db.get(MessageThread, row.thread_id)
        if thread is None or thread.created_by != principal_id:
            return False
        if row.added_by != principal_id or not is_staff(db, principal_id):
            return False
        has_messages = db.query(exists().where(Message.thread_id == row.thread_id)).scalar()
        return not has_messages
    if op == Op.UPDATE:
        return row.user_id == principal_id
    return False


def _message(db, op, row, principal_id) -> bool:
    if op == Op.READ:
        return is_participant(db, row.thread_id, principal_id)
    if op == Op.INSERT:
        return row.sender_user_id == principal_id and is_participant(db, row.thread_id, principal_id)
    # Messages are immutable.
    return False


def _team_wide(db, op, row, principal_id) -> bool:
    if op == Op.READ:
        return True
    return is_staff(db, principal_id)


def _athlete_owned(owner_attr: str) -> Callable[..., bool]:
    def predicate(db, op, row, principal_id) -> bool:
        if op == Op.READ:
            return _self_or_staff(db, getattr(row, owner_attr), principal_id)
        return is_staff(db, principal_id)
    return predicate


_POLICIES: Dict[Collection, Callable[..., bool]] = {
    Collection.PROFILE: _profile,
    Collection.THREAD: _thread,
    Collection.PARTICIPANT: _participant,
    Collection.MESSAGE: _message,
    Collection.MEET: _team_wide,
    Collection.EVENT: _team_wide,
    Collection.MEET_EVENT: _team_wide,
    Collection.ANNOUNCEMENT: _team_wide,
    Collection.ASSIGNMENT: _athlete_owned("athlete_id"),
    Collection.RESULT: _athlete_owned("athlete_id"),
    Collection.EMERGENCY_CONTACT: _athlete_owned("athlete_user_id"),
    Collection.MEDICATION: _athlete_owned("athlete_user_id"),
}


def allow(db: Session, op: Op, collection: Collection, row: Any, principal_id: Optional[UUID]) -> bool:
    """Single entry point: may `principal_id` perform `op` on `row`?"""
    if principal_id is None:
        return False
    return bool(_POLICIES[collection](db, op, row, principal_id))


def require(
    db: Session,
    op: Op,
    collection: Collection,
    row: Any,
    principal_id: Optional[UUID],
    detail: Optional[str] = None,
) -> None:
    """Raise ForbiddenError unless the write is allowed. Writes never silently no-op."""
    if not allow(db, op, collection, row, principal_id):
        logger.warning(
            f"Denied {op.value} on {collection.value}",
            extra={"extra_fields": {"principal_id": str(principal_id), "op": op.value, "collection": collection.value}},
        )
        raise ForbiddenError(detail or f"Not allowed to {op.value} {collection.value.replace('_', ' ')}")


def require_staff(db: Session, principal_id: Optional[UUID], detail: Optional[str] = None) -> None:
    if not is_staff(db, principal_id):
        raise ForbiddenError(detail or "Coaching staff only")


# --- read scopes ------------------------------------------------------------

def scope_profiles(query: Query, db: Session, principal_id: UUID) -> Query:
    if is_staff(db, principal_id):
        return query
    return query.filter(Profile.user_id == principal_id)


def scope_athlete_rows(query: Query, column, db: Session, principal_id: UUID) -> Query:
    """Staff see every row; athletes only rows whose `column` names them."""
    if is_staff(db, principal_id):
        return query
    return query.filter(column == principal_id)


def scope_thread_rows(query: Query, thread_column, principal_id: UUID) -> Query:
    """Rows belonging to threads the principal participates in."""
    member = exists().where(
        MessageThreadParticipant.thread_id == thread_column,
        MessageThreadParticipant.user_id == principal_id,
    )
    return query.filter(member)
