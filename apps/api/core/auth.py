"""
Authentication dependencies.

Provides FastAPI dependencies for:
- Getting the current authenticated principal
- Coaching-staff gating for admin routes

Roles are never read from the token; see core.policy.resolve_role.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.database import get_db
from core.exceptions import UnauthorizedError, ForbiddenError
from core.policy import is_staff
from core.security import decode_access_token
from models import Principal
from services.identity import is_suspended

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def resolve_principal(db: Session, credentials: Optional[HTTPAuthorizationCredentials]) -> Principal:
    """
    Resolve the bearer token to a principal.

    Suspended (deactivated) principals are treated as unauthenticated.
    """
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid authentication credentials")

    # Recovery tokens are single-purpose and never act as sessions.
    if payload.get("purpose"):
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")

    try:
        user_id_uuid = UUID(user_id)
    except ValueError:
        raise UnauthorizedError("Invalid user ID format")

    principal = db.get(Principal, user_id_uuid)
    if not principal:
        raise UnauthorizedError("User not found")

    if is_suspended(principal):
        raise UnauthorizedError("Account is deactivated")

    return principal


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Principal:
    """Get the current authenticated principal from the bearer token."""
    return resolve_principal(db, credentials)


def require_coaching_staff(
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> Principal:
    """Require role coach or assistant_coach, resolved from the caller's own profile."""
    if not is_staff(db, current_user.id):
        raise ForbiddenError("Coaching staff only")
    return current_user
