"""
Profile endpoints: a principal reads and edits their own profile, coaching
staff read and edit anyone's. Hidden profiles answer 404.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from core.policy import scope_profiles
from models import Principal, Profile
from schemas import AccountUpdate, ProfileResponse
from services import accounts

router = APIRouter(prefix="/v1/profiles", tags=["profiles"])


@router.get("", response_model=List[ProfileResponse])
def list_profiles(
    role: Optional[str] = Query(default=None, description="Filter by role, e.g. 'athlete'"),
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    query = db.query(Profile)
    if role:
        query = query.filter(Profile.role == role)
    return scope_profiles(query, db, current_user.id).order_by(Profile.full_name.asc()).all()


@router.get("/{user_id}", response_model=ProfileResponse)
def get_profile(
    user_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return accounts.get_profile(db, current_user.id, user_id)


@router.patch("/{user_id}", response_model=ProfileResponse)
def update_profile(
    user_id: UUID,
    body: AccountUpdate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return accounts.update_account(db, current_user.id, user_id, body.model_dump(exclude_unset=True))
