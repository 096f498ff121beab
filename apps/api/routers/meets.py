"""
Meets and the event catalog: every signed-in user reads, coaching staff write.
"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from models import Principal
from schemas import (
    EventCreate,
    EventResponse,
    MeetCreate,
    MeetDetailResponse,
    MeetEventResponse,
    MeetResponse,
    MeetUpdate,
)
from services import meets as meet_service

router = APIRouter(prefix="/v1", tags=["meets"])


@router.get("/meets", response_model=List[MeetResponse])
def list_meets(
    upcoming: bool = Query(default=False, description="Only meets from today on, soonest first"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return meet_service.list_meets(db, upcoming_from=date.today() if upcoming else None, limit=limit)


@router.post("/meets", response_model=MeetResponse, status_code=status.HTTP_201_CREATED)
def create_meet(
    body: MeetCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return meet_service.create_meet(db, current_user.id, body.model_dump())


@router.get("/meets/{meet_id}", response_model=MeetDetailResponse)
def get_meet(
    meet_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    meet = meet_service.get_meet(db, meet_id)
    response = MeetDetailResponse.model_validate(meet)
    response.events = [MeetEventResponse.model_validate(e) for e in meet_service.list_meet_events(db, meet_id)]
    return response


@router.patch("/meets/{meet_id}", response_model=MeetResponse)
def update_meet(
    meet_id: UUID,
    body: MeetUpdate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return meet_service.update_meet(db, current_user.id, meet_id, body.model_dump(exclude_unset=True))


@router.delete("/meets/{meet_id}")
def delete_meet(
    meet_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    deleted = meet_service.delete_meet(db, current_user.id, meet_id)
    return {"success": True, "deleted": deleted}


@router.get("/events", response_model=List[EventResponse])
def list_events(
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return meet_service.list_events(db)


@router.post("/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    body: EventCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return meet_service.create_event(db, current_user.id, body.name)
