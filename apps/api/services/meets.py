"""
Meets and the event catalog.

Everyone signed in can read both; coaching staff maintain them.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.policy import Collection, Op, require, require_staff
from models import Event, Meet, MeetEvent
from services.assignments import normalize_event_name

logger = logging.getLogger(__name__)

MEET_FIELDS = ("name", "location", "meet_date", "start_time", "bus_time", "notes")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def list_meets(
    db: Session,
    *,
    upcoming_from: Optional[date] = None,
    ascending: bool = False,
    limit: Optional[int] = None,
) -> List[Meet]:
    """Meets by date, newest first unless `ascending` or `upcoming_from` is given."""
    query = db.query(Meet)
    if upcoming_from is not None:
        query = query.filter(Meet.meet_date >= upcoming_from)
        ascending = True
    order = Meet.meet_date.asc() if ascending else Meet.meet_date.desc()
    query = query.order_by(order, Meet.name.asc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_meet(db: Session, meet_id: UUID) -> Meet:
    meet = db.get(Meet, meet_id)
    if meet is None:
        raise NotFoundError("Meet", str(meet_id))
    return meet


def create_meet(db: Session, actor_id: UUID, fields: Dict[str, Any]) -> Meet:
    name = _clean(fields.get("name"))
    if not name:
        raise ValidationError("Meet name is required", field="name")
    if fields.get("meet_date") is None:
        raise ValidationError("Meet date is required", field="meet_date")

    meet = Meet(
        name=name,
        location=_clean(fields.get("location")),
        meet_date=fields["meet_date"],
        start_time=fields.get("start_time"),
        bus_time=fields.get("bus_time"),
        notes=_clean(fields.get("notes")),
    )
    require(db, Op.INSERT, Collection.MEET, meet, actor_id, "Only coaching staff can create meets")
    db.add(meet)
    db.flush()
    logger.info(f"Meet {meet.id} created by {actor_id}")
    return meet


def update_meet(db: Session, actor_id: UUID, meet_id: UUID, changes: Dict[str, Any]) -> Meet:
    meet = get_meet(db, meet_id)
    require(db, Op.UPDATE, Collection.MEET, meet, actor_id, "Only coaching staff can edit meets")

    for key in MEET_FIELDS:
        if key not in changes:
            continue
        value = changes[key]
        if key in ("name", "location", "notes"):
            value = _clean(value)
        if key == "name" and not value:
            raise ValidationError("Meet name is required", field="name")
        if key == "meet_date" and value is None:
            raise ValidationError("Meet date is required", field="meet_date")
        setattr(meet, key, value)
    db.flush()
    return meet


def delete_meet(db: Session, actor_id: UUID, meet_id: UUID) -> bool:
    require_staff(db, actor_id, "Only coaching staff can delete meets")
    meet = db.get(Meet, meet_id)
    if meet is None:
        return False
    require(db, Op.DELETE, Collection.MEET, meet, actor_id, "Only coaching staff can delete meets")
    db.delete(meet)
    db.flush()
    logger.info(f"Meet {meet_id} deleted by {actor_id}")
    return True


def list_meet_events(db: Session, meet_id: UUID) -> List[MeetEvent]:
    return (
        db.query(MeetEvent)
        .filter(MeetEvent.meet_id == meet_id)
        .order_by(MeetEvent.event_name.asc())
        .all()
    )


def list_events(db: Session) -> List[Event]:
    return db.query(Event).order_by(Event.name.asc()).all()


def create_event(db: Session, actor_id: UUID, name: str) -> Event:
    clean = normalize_event_name(name)
    if not clean:
        raise ValidationError("Event name is required", field="name")

    event = Event(name=clean)
    require(db, Op.INSERT, Collection.EVENT, event, actor_id, "Only coaching staff can add events")
    try:
        with db.begin_nested():
            db.add(event)
            db.flush()
    except IntegrityError:
        raise ConflictError(f"Event '{clean}' already exists")
    return event
