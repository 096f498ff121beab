"""
Announcement endpoints. Listing is pinned first, then newest first.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from models import Principal
from schemas import AnnouncementCreate, AnnouncementResponse, AnnouncementUpdate
from services import announcements as announcement_service

router = APIRouter(prefix="/v1/announcements", tags=["announcements"])


@router.get("", response_model=List[AnnouncementResponse])
def list_announcements(
    pinned: bool = Query(default=False, description="Only pinned announcements"),
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return announcement_service.list_announcements(db, pinned_only=pinned, limit=limit)


@router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
def create_announcement(
    body: AnnouncementCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return announcement_service.create_announcement(
        db, current_user.id, title=body.title, body=body.body, pinned=body.pinned
    )


@router.patch("/{announcement_id}", response_model=AnnouncementResponse)
def update_announcement(
    announcement_id: UUID,
    body: AnnouncementUpdate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return announcement_service.update_announcement(
        db, current_user.id, announcement_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/{announcement_id}")
def delete_announcement(
    announcement_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    deleted = announcement_service.delete_announcement(db, current_user.id, announcement_id)
    return {"success": True, "deleted": deleted}
