"""
Result service.

A result is an attested mark, so at most one exists per (meet event, athlete)
and a second entry is refused rather than merged. To correct a mark, delete
the existing result and enter it again.

Also holds the mark parsing and ranking used by the team assistant.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import DuplicateResultError, NotFoundError, ValidationError
from core.policy import require_staff, scope_athlete_rows
from models import UQ_RESULT, Meet, MeetEvent, Profile, Result
from services.consistency import is_unique_violation

logger = logging.getLogger(__name__)

NON_TIME_MARKS = {"DNF", "DQ", "DNS", "NT", "—", "--"}


@dataclass
class ResultView:
    id: UUID
    meet_event_id: UUID
    meet_id: UUID
    meet_name: str
    meet_date: Optional[date]
    event_name: str
    athlete_id: UUID
    athlete_name: Optional[str]
    mark: str
    place: Optional[Decimal]
    points: Optional[Decimal]
    notes: Optional[str]


def parse_optional_number(value: Union[str, int, float, Decimal, None], field: str) -> Optional[Decimal]:
    """
    Integer/decimal text to Decimal. Blank means "not provided", never zero.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field.capitalize()} must be a number", field=field)
    text = str(value).strip()
    if text == "":
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"{field.capitalize()} must be a number", field=field)
    if not number.is_finite():
        raise ValidationError(f"{field.capitalize()} must be a number", field=field)
    return number


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def create_result(
    db: Session,
    actor_id: UUID,
    *,
    meet_event_id: UUID,
    athlete_id: UUID,
    mark: Optional[str],
    place: Union[str, int, float, Decimal, None] = None,
    points: Union[str, int, float, Decimal, None] = None,
    notes: Optional[str] = None,
) -> Result:
    """
    Insert a result. Never an upsert.

    A uniqueness violation on (meet_event_id, athlete_id) rolls back to a
    savepoint, so other work in the session survives, and raises
    DuplicateResultError.
    """
    require_staff(db, actor_id, "Only coaching staff can enter results")

    clean_mark = _clean(mark)
    if clean_mark is None:
        raise ValidationError("Mark is required", field="mark")
    place_num = parse_optional_number(place, "place")
    points_num = parse_optional_number(points, "points")

    if db.get(MeetEvent, meet_event_id) is None:
        raise NotFoundError("Meet event", str(meet_event_id))
    athlete = db.get(Profile, athlete_id)
    if athlete is None or athlete.role != "athlete":
        raise ValidationError("Select an athlete", field="athlete_id")

    result = Result(
        meet_event_id=meet_event_id,
        athlete_id=athlete_id,
        mark=clean_mark,
        place=place_num,
        points=points_num,
        notes=_clean(notes),
    )
    try:
        with db.begin_nested():
            db.add(result)
            db.flush()
    except IntegrityError as e:
        if is_unique_violation(e, UQ_RESULT, "result", ("meet_event_id", "athlete_id")):
            logger.info(
                "Duplicate result rejected",
                extra={"extra_fields": {"meet_event_id": str(meet_event_id), "athlete_id": str(athlete_id)}},
            )
            raise DuplicateResultError()
        raise

    logger.info(f"Result {result.id} entered by {actor_id}")
    return result


def delete_result(db: Session, actor_id: UUID, result_id: UUID) -> bool:
    """Delete a result, freeing its (meet event, athlete) pair. Missing ids are a no-op."""
    require_staff(db, actor_id, "Only coaching staff can delete results")

    result = db.get(Result, result_id)
    if result is None:
        return False
    db.delete(result)
    db.flush()
    logger.info(f"Result {result_id} deleted by {actor_id}")
    return True


def _results_query(db: Session, actor_id: UUID):
    query = (
        db.query(Result, MeetEvent, Meet, Profile)
        .join(MeetEvent, MeetEvent.id == Result.meet_event_id)
        .join(Meet, Meet.id == MeetEvent.meet_id)
        .join(Profile, Profile.user_id == Result.athlete_id)
    )
    return scope_athlete_rows(query, Result.athlete_id, db, actor_id)


def _view(r: Result, me: MeetEvent, m: Meet, p: Profile) -> ResultView:
    return ResultView(
        id=r.id,
        meet_event_id=me.id,
        meet_id=m.id,
        meet_name=m.name,
        meet_date=m.meet_date,
        event_name=me.event_name,
        athlete_id=r.athlete_id,
        athlete_name=p.full_name,
        mark=r.mark,
        place=r.place,
        points=r.points,
        notes=r.notes,
    )


def list_results(
    db: Session,
    actor_id: UUID,
    *,
    meet_id: Optional[UUID] = None,
    meet_event_id: Optional[UUID] = None,
    athlete_id: Optional[UUID] = None,
) -> List[ResultView]:
    query = _results_query(db, actor_id)
    if meet_id is not None:
        query = query.filter(MeetEvent.meet_id == meet_id)
    if meet_event_id is not None:
        query = query.filter(Result.meet_event_id == meet_event_id)
    if athlete_id is not None:
        query = query.filter(Result.athlete_id == athlete_id)
    rows = query.order_by(MeetEvent.event_name.asc(), Result.created_at.desc()).all()
    return [_view(*row) for row in rows]


# --- ranking ----------------------------------------------------------------

def parse_mark_seconds(mark: Optional[str]) -> Optional[float]:
    """
    "10.90" -> 10.9, "4:32.5" -> 272.5. DNF/DQ/DNS/NT and anything else
    unparseable return None.
    """
    if mark is None:
        return None
    text = str(mark).strip()
    if not text or text.upper() in NON_TIME_MARKS:
        return None

    try:
        if ":" in text:
            parts = [p.strip() for p in text.split(":")]
            if len(parts) != 2:
                return None
            return float(parts[0]) * 60 + float(parts[1])
        return float(text)
    except ValueError:
        return None


def normalize_event_query(name: Optional[str]) -> str:
    text = " ".join((name or "").lower().split())
    text = re.sub(r"met(er|re)s?\b", "m", text)
    return re.sub(r"(\d)\s+m\b", r"\1m", text)


def top_results(
    db: Session,
    actor_id: UUID,
    event_query: str,
    *,
    limit: int = 5,
    meet_id: Optional[UUID] = None,
) -> List[tuple]:
    """
    Fastest comparable marks for an event, as (seconds, ResultView) pairs.

    Only results the actor may read are considered.
    """
    wanted = normalize_event_query(event_query)
    if not wanted:
        return []

    scored = []
    for view in list_results(db, actor_id, meet_id=meet_id):
        if wanted not in normalize_event_query(view.event_name):
            continue
        seconds = parse_mark_seconds(view.mark)
        if seconds is not None:
            scored.append((seconds, view))

    scored.sort(key=lambda pair: pair[0])
    return scored[:max(1, limit)]
