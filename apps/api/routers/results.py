"""
Result endpoints.

POST never overwrites: a second result for the same (meet event, athlete)
answers 409 DUPLICATE_RESULT until the existing one is deleted.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from core.exceptions import NotFoundError
from models import Principal
from schemas import ResultCreate, ResultResponse
from services import results as result_service

router = APIRouter(prefix="/v1/results", tags=["results"])


@router.get("", response_model=List[ResultResponse])
def list_results(
    meet_id: Optional[UUID] = Query(default=None),
    meet_event_id: Optional[UUID] = Query(default=None),
    athlete_id: Optional[UUID] = Query(default=None),
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return result_service.list_results(
        db, current_user.id, meet_id=meet_id, meet_event_id=meet_event_id, athlete_id=athlete_id
    )


@router.post("", response_model=ResultResponse, status_code=status.HTTP_201_CREATED)
def create_result(
    body: ResultCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    result = result_service.create_result(
        db,
        current_user.id,
        meet_event_id=body.meet_event_id,
        athlete_id=body.athlete_id,
        mark=body.mark,
        place=body.place,
        points=body.points,
        notes=body.notes,
    )
    views = result_service.list_results(db, current_user.id, meet_event_id=result.meet_event_id, athlete_id=result.athlete_id)
    if not views:
        raise NotFoundError("Result", str(result.id))
    return views[0]


@router.delete("/{result_id}")
def delete_result(
    result_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    deleted = result_service.delete_result(db, current_user.id, result_id)
    return {"success": True, "deleted": deleted}
