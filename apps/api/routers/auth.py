"""
Authentication API endpoints.

Provides:
- Login (JWT token generation)
- Current principal's profile
- Password reset completion (token from a recovery link)
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_principal
from core.database import get_db
from core.exceptions import NotFoundError
from core.policy import is_staff
from core.security import create_access_token, ACCESS_TOKEN_EXPIRE_MINUTES
from models import Principal, Profile
from schemas import LoginRequest, MeResponse, ResetPasswordRequest, TokenResponse
from services import accounts, identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate and return a bearer token.

    The token carries only the principal id; the role is always read from
    the profile row when a request is authorized.
    """
    principal = identity.authenticate(db, body.email, body.password)
    token = create_access_token({"sub": str(principal.id)})
    logger.info(f"Login: {principal.id}")
    return TokenResponse(access_token=token, expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60)


@router.get("/me", response_model=MeResponse)
def me(
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    profile = db.get(Profile, current_user.id)
    if profile is None:
        raise NotFoundError("Profile", str(current_user.id))
    response = MeResponse.model_validate(profile)
    response.is_staff = is_staff(db, current_user.id)
    return response


@router.post("/reset-password")
def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    principal = accounts.reset_password(db, body.token, body.password)
    logger.info(f"Password reset completed for {principal.id}")
    return {"success": True}
