"""
Assignment service.

At most one assignment per (meet event, athlete). Writes are upserts keyed on
that pair, so a uniqueness violation can never reach the caller; instead the
caller is told whether the write created a row, changed its status, or was a
no-op.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, UpstreamError, ValidationError
from core.policy import Collection, Op, require, require_staff, scope_athlete_rows
from models import ASSIGNMENT_STATUSES, Assignment, Meet, MeetEvent, Profile
from services.consistency import dialect_insert

logger = logging.getLogger(__name__)

OUTCOME_CREATED = "created"
OUTCOME_UNCHANGED = "unchanged"
OUTCOME_UPDATED = "updated"


@dataclass
class AssignmentOutcome:
    """What an upsert did to the (meet event, athlete) pair."""
    kind: str
    assignment: Assignment
    new_status: str
    old_status: Optional[str] = None

    @property
    def message(self) -> str:
        if self.kind == OUTCOME_CREATED:
            return f"Assignment saved as {self.new_status}."
        if self.kind == OUTCOME_UNCHANGED:
            return f"No change: athlete is already {self.new_status} for this event."
        return f"Status changed from {self.old_status} to {self.new_status}."


@dataclass
class AssignmentView:
    id: UUID
    meet_event_id: UUID
    event_name: str
    athlete_id: UUID
    athlete_name: Optional[str]
    status: str


def normalize_event_name(event_name: Optional[str]) -> str:
    return " ".join((event_name or "").split())


def resolve_meet_event(db: Session, actor_id: UUID, meet_id: UUID, event_name: str) -> MeetEvent:
    """
    Find or create the event occurrence for (meet, event name).

    Conflict-tolerant insert followed by a select, so concurrent callers all
    land on the same row.
    """
    name = normalize_event_name(event_name)
    if not name:
        raise ValidationError("Event name is required", field="event_name")

    meet = db.get(Meet, meet_id)
    if meet is None:
        raise NotFoundError("Meet", str(meet_id))

    require(db, Op.INSERT, Collection.MEET_EVENT, MeetEvent(meet_id=meet_id, event_name=name), actor_id)

    try:
        stmt = (
            dialect_insert(db, MeetEvent)
            .values(id=uuid.uuid4(), meet_id=meet_id, event_name=name, created_at=datetime.now(timezone.utc))
            .on_conflict_do_nothing(index_elements=["meet_id", "event_name"])
        )
        db.execute(stmt)
        meet_event = (
            db.query(MeetEvent)
            .filter(MeetEvent.meet_id == meet_id, MeetEvent.event_name == name)
            .one_or_none()
        )
    except SQLAlchemyError as e:
        logger.error(f"Meet event resolution failed for meet={meet_id} event={name!r}: {e}")
        raise UpstreamError("Could not create or find the event for this meet.")

    if meet_event is None:
        raise UpstreamError("Could not create or find the event for this meet.")
    return meet_event


def upsert_assignment(
    db: Session,
    actor_id: UUID,
    *,
    meet_id: UUID,
    event_name: str,
    athlete_id: UUID,
    status: str,
) -> AssignmentOutcome:
    if status not in ASSIGNMENT_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ASSIGNMENT_STATUSES)}", field="status")

    require_staff(db, actor_id, "Only coaching staff can assign events")

    athlete = db.get(Profile, athlete_id)
    if athlete is None or athlete.role != "athlete":
        raise ValidationError("Select an athlete", field="athlete_id")

    meet_event = resolve_meet_event(db, actor_id, meet_id, event_name)

    prior = (
        db.query(Assignment.status)
        .filter(Assignment.meet_event_id == meet_event.id, Assignment.athlete_id == athlete_id)
        .first()
    )
    old_status = prior[0] if prior else None

    now = datetime.now(timezone.utc)
    stmt = dialect_insert(db, Assignment).values(
        id=uuid.uuid4(),
        meet_event_id=meet_event.id,
        athlete_id=athlete_id,
        status=status,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["meet_event_id", "athlete_id"],
        set_={"status": stmt.excluded.status, "updated_at": now},
    )
    db.execute(stmt)

    assignment = (
        db.query(Assignment)
        .populate_existing()
        .filter(Assignment.meet_event_id == meet_event.id, Assignment.athlete_id == athlete_id)
        .one()
    )

    if old_status is None:
        kind = OUTCOME_CREATED
    elif old_status == status:
        kind = OUTCOME_UNCHANGED
    else:
        kind = OUTCOME_UPDATED

    logger.info(
        f"Assignment {kind}",
        extra={"extra_fields": {
            "actor_id": str(actor_id),
            "meet_event_id": str(meet_event.id),
            "athlete_id": str(athlete_id),
            "old_status": old_status,
            "new_status": status,
        }},
    )
    return AssignmentOutcome(kind=kind, assignment=assignment, new_status=status, old_status=old_status)


def delete_assignment(db: Session, actor_id: UUID, assignment_id: UUID) -> bool:
    """Remove an assignment. Deleting a missing id is not an error; returns whether a row went away."""
    require_staff(db, actor_id, "Only coaching staff can remove assignments")

    assignment = db.get(Assignment, assignment_id)
    if assignment is None:
        return False
    db.delete(assignment)
    db.flush()
    logger.info(f"Assignment {assignment_id} deleted by {actor_id}")
    return True


def list_assignments_for_meet(db: Session, actor_id: UUID, meet_id: UUID) -> List[AssignmentView]:
    """Assignments for a meet: all for staff, own rows only for athletes."""
    query = (
        db.query(Assignment, MeetEvent, Profile)
        .join(MeetEvent, MeetEvent.id == Assignment.meet_event_id)
        .join(Profile, Profile.user_id == Assignment.athlete_id)
        .filter(MeetEvent.meet_id == meet_id)
    )
    query = scope_athlete_rows(query, Assignment.athlete_id, db, actor_id)
    rows = query.order_by(MeetEvent.event_name.asc(), Profile.full_name.asc()).all()

    return [
        AssignmentView(
            id=a.id,
            meet_event_id=me.id,
            event_name=me.event_name,
            athlete_id=a.athlete_id,
            athlete_name=p.full_name,
            status=a.status,
        )
        for a, me, p in rows
    ]
