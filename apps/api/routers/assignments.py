"""
Event assignment endpoints.

POST is an upsert on (meet event, athlete): the response says whether it
created the assignment, changed its status, or changed nothing.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from models import Principal
from schemas import AssignmentResponse, AssignmentUpsert, AssignmentUpsertResponse
from services import assignments as assignment_service
from services.assignment_export import export_assignments_to_csv

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["assignments"])


@router.get("/meets/{meet_id}/assignments", response_model=List[AssignmentResponse])
def list_assignments(
    meet_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return assignment_service.list_assignments_for_meet(db, current_user.id, meet_id)


@router.post("/meets/{meet_id}/assignments", response_model=AssignmentUpsertResponse)
def upsert_assignment(
    meet_id: UUID,
    body: AssignmentUpsert,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    outcome = assignment_service.upsert_assignment(
        db,
        current_user.id,
        meet_id=meet_id,
        event_name=body.event_name,
        athlete_id=body.athlete_id,
        status=body.status,
    )
    a = outcome.assignment
    return AssignmentUpsertResponse(
        outcome=outcome.kind,
        message=outcome.message,
        old_status=outcome.old_status,
        new_status=outcome.new_status,
        assignment=AssignmentResponse(
            id=a.id,
            meet_event_id=a.meet_event_id,
            event_name=a.meet_event.event_name,
            athlete_id=a.athlete_id,
            athlete_name=a.athlete.full_name if a.athlete else None,
            status=a.status,
        ),
    )


@router.delete("/assignments/{assignment_id}")
def delete_assignment(
    assignment_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    deleted = assignment_service.delete_assignment(db, current_user.id, assignment_id)
    return {"success": True, "deleted": deleted}


@router.get("/meets/{meet_id}/assignments/export")
def export_assignments(
    meet_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Download the meet's assignments (as visible to the caller) as CSV."""
    result = export_assignments_to_csv(db, current_user.id, meet_id)
    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )
