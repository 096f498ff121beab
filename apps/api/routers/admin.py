"""
Admin account management (coaching staff only).

Accounts are never hard-deleted: DELETE suspends the login indefinitely and
keeps the profile and all of its assignments/results.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import require_coaching_staff
from core.database import get_db
from models import Principal
from schemas import (
    AccountCreate,
    AccountUpdate,
    DeactivateResponse,
    ProfileResponse,
    SendPasswordResetRequest,
    SendPasswordResetResponse,
)
from services import accounts

router = APIRouter(prefix="/v1/admin/accounts", tags=["admin"])


@router.get("", response_model=List[ProfileResponse])
def list_accounts(
    current_user: Principal = Depends(require_coaching_staff),
    db: Session = Depends(get_db),
):
    return accounts.list_active_accounts(db, current_user.id)


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    body: AccountCreate,
    current_user: Principal = Depends(require_coaching_staff),
    db: Session = Depends(get_db),
):
    return accounts.create_account(
        db,
        current_user.id,
        full_name=body.full_name,
        email=body.email,
        password=body.password,
        role=body.role,
        gender=body.gender,
        phone=body.phone,
    )


@router.patch("/{user_id}", response_model=ProfileResponse)
def update_account(
    user_id: UUID,
    body: AccountUpdate,
    current_user: Principal = Depends(require_coaching_staff),
    db: Session = Depends(get_db),
):
    return accounts.update_account(db, current_user.id, user_id, body.model_dump(exclude_unset=True))


@router.delete("/{user_id}", response_model=DeactivateResponse)
def deactivate_account(
    user_id: UUID,
    current_user: Principal = Depends(require_coaching_staff),
    db: Session = Depends(get_db),
):
    principal = accounts.deactivate_account(db, current_user.id, user_id)
    return DeactivateResponse(user_id=principal.id, banned_until=principal.banned_until)


@router.post("/send-password-reset", response_model=SendPasswordResetResponse)
def send_password_reset(
    body: SendPasswordResetRequest,
    current_user: Principal = Depends(require_coaching_staff),
    db: Session = Depends(get_db),
):
    link = accounts.send_password_reset(db, current_user.id, body.email)
    return SendPasswordResetResponse(action_link=link)
