"""
Identity provider.

Owns Principal rows: credentials, email, suspension. Application data lives
on Profile; this module never touches it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode
from uuid import UUID

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ConflictError, NotFoundError, UnauthorizedError
from core.security import (
    create_password_reset_token,
    get_password_hash,
    verify_password,
)
from models import Principal

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def is_suspended(principal: Principal, now: Optional[datetime] = None) -> bool:
    """True while a ban is in force (banned_until in the future)."""
    if principal is None or principal.banned_until is None:
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(principal.banned_until) > now


def get_principal_by_email(db: Session, email: str) -> Optional[Principal]:
    norm = normalize_email(email)
    if not norm:
        return None
    return db.query(Principal).filter(Principal.email == norm).first()


def create_principal(db: Session, *, email: str, password: str) -> Principal:
    norm = normalize_email(email)
    if get_principal_by_email(db, norm):
        raise ConflictError("A user with this email address has already been registered", error_code="EMAIL_EXISTS")

    principal = Principal(email=norm, password_hash=get_password_hash(password))
    db.add(principal)
    db.flush()
    logger.info(f"Principal created: {principal.id}")
    return principal


def delete_principal(db: Session, principal_id: UUID) -> None:
    """Hard delete. Only used to undo a half-finished account creation."""
    principal = db.get(Principal, principal_id)
    if principal is not None:
        db.delete(principal)
        db.flush()
        logger.info(f"Principal rolled back: {principal_id}")


def update_principal_email(db: Session, principal_id: UUID, email: str) -> Principal:
    principal = db.get(Principal, principal_id)
    if principal is None:
        raise NotFoundError("User", str(principal_id))

    norm = normalize_email(email)
    existing = get_principal_by_email(db, norm)
    if existing is not None and existing.id != principal_id:
        raise ConflictError("A user with this email address has already been registered", error_code="EMAIL_EXISTS")

    principal.email = norm
    db.flush()
    return principal


def suspend_principal(db: Session, principal_id: UUID, hours: Optional[int] = None) -> Principal:
    principal = db.get(Principal, principal_id)
    if principal is None:
        raise NotFoundError("User", str(principal_id))

    duration = timedelta(hours=hours if hours is not None else settings.SUSPENSION_DURATION_HOURS)
    principal.banned_until = datetime.now(timezone.utc) + duration
    db.flush()
    logger.info(f"Principal suspended: {principal_id} until {principal.banned_until.isoformat()}")
    return principal


def set_password(db: Session, principal: Principal, password: str) -> None:
    principal.password_hash = get_password_hash(password)
    db.flush()


def authenticate(db: Session, email: str, password: str) -> Principal:
    """
    Verify credentials and return the principal.

    Unknown email, wrong password and suspended accounts all fail with the
    same message so the response does not reveal which one it was.
    """
    principal = get_principal_by_email(db, email)
    if (
        principal is None
        or not principal.password_hash
        or not verify_password(password, principal.password_hash)
        or is_suspended(principal)
    ):
        raise UnauthorizedError("Invalid email or password")

    principal.last_sign_in_at = datetime.now(timezone.utc)
    db.flush()
    return principal


def generate_recovery_link(db: Session, email: str, redirect_to: Optional[str] = None) -> Optional[str]:
    """Recovery link for an active principal, or None when there is nobody to reset."""
    principal = get_principal_by_email(db, email)
    if principal is None or is_suspended(principal):
        return None

    token = create_password_reset_token(str(principal.id), principal.email)
    base = redirect_to or f"{settings.WEB_APP_BASE_URL.rstrip('/')}/auth/reset"
    return f"{base}?{urlencode({'token': token})}"
