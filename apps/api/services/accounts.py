"""
Account lifecycle service.

Create, update, deactivate and list team accounts. A Principal (login) and its
Profile are always created together; deactivation is a permanent suspension
rather than a delete, so assignment and result history keeps resolving the
athlete's name.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from core.password_policy import validate_password
from core.policy import Collection, Op, allow, is_staff, require, require_staff
from core.security import decode_password_reset_token
from models import GENDERS, ROLES, Principal, Profile
from services import identity

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("full_name", "email", "phone", "role", "gender")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _validate_email(email: Optional[str]) -> str:
    try:
        return validate_email((email or "").strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        raise ValidationError("Enter a valid email address", field="email")


def _validate_role(role: Optional[str]) -> str:
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}", field="role")
    return role


def _validate_gender(gender: Optional[str]) -> Optional[str]:
    if gender is not None and gender not in GENDERS:
        raise ValidationError(f"Gender must be one of: {', '.join(GENDERS)}", field="gender")
    return gender


def _insert_profile(db: Session, principal: Principal, **fields) -> Profile:
    profile = Profile(user_id=principal.id, **fields)
    db.add(profile)
    db.flush()
    return profile


def create_account(
    db: Session,
    actor_id: UUID,
    *,
    full_name: str,
    email: str,
    password: str,
    role: str,
    gender: Optional[str] = None,
    phone: Optional[str] = None,
) -> Profile:
    """
    Create a Principal and its Profile.

    Gender is required for athletes and forced to null for every other role.
    If the profile cannot be written the principal is deleted again.
    """
    require_staff(db, actor_id)

    name = _clean(full_name)
    if not name:
        raise ValidationError("Name is required", field="full_name")
    norm_email = _validate_email(email)
    ok, errors = validate_password(password)
    if not ok:
        raise ValidationError(errors[0], field="password")
    role = _validate_role(role)
    gender = _validate_gender(gender)
    if role == "athlete" and gender is None:
        raise ValidationError("Gender is required for athletes", field="gender")
    if role != "athlete":
        gender = None

    principal = identity.create_principal(db, email=norm_email, password=password)

    try:
        with db.begin_nested():
            profile = _insert_profile(
                db,
                principal,
                full_name=name,
                role=role,
                gender=gender,
                email=norm_email,
                phone=_clean(phone),
            )
    except SQLAlchemyError as e:
        logger.error(f"Profile write failed for new principal {principal.id}: {e}")
        identity.delete_principal(db, principal.id)
        raise UpstreamError("Failed to create account profile.")

    logger.info(
        "Account created",
        extra={"extra_fields": {"actor_id": str(actor_id), "user_id": str(principal.id), "role": role}},
    )
    return profile


def get_profile(db: Session, actor_id: UUID, user_id: UUID) -> Profile:
    """Profile visible to the actor; hidden rows look exactly like missing ones."""
    profile = db.get(Profile, user_id)
    if profile is None or not allow(db, Op.READ, Collection.PROFILE, profile, actor_id):
        raise NotFoundError("Profile", str(user_id))
    return profile


def update_account(db: Session, actor_id: UUID, user_id: UUID, changes: Dict[str, Any]) -> Profile:
    """
    Apply any subset of name/email/phone/role/gender.

    The resulting role decides gender: anything but athlete stores null, even
    when a gender was supplied in the same request. An email change goes to the
    principal first; if that fails nothing else is applied.
    """
    profile = get_profile(db, actor_id, user_id)
    require(db, Op.UPDATE, Collection.PROFILE, profile, actor_id)

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    actor_is_staff = is_staff(db, actor_id)
    new_role = changes.get("role")
    if new_role is not None:
        _validate_role(new_role)
        if new_role != profile.role and not actor_is_staff:
            raise ForbiddenError("Only coaching staff can change roles")

    payload: Dict[str, Any] = {}
    if "full_name" in changes:
        name = _clean(changes["full_name"])
        if changes["full_name"] is not None and not name:
            raise ValidationError("Name cannot be blank", field="full_name")
        if name is not None and len(name) > 200:
            raise ValidationError("Name must be at most 200 characters", field="full_name")
        payload["full_name"] = name
    if "phone" in changes:
        phone = _clean(changes["phone"])
        if phone is not None and len(phone) > 50:
            raise ValidationError("Phone must be at most 50 characters", field="phone")
        payload["phone"] = phone

    new_email = None
    if changes.get("email") is not None:
        new_email = _validate_email(changes["email"])

    effective_role = new_role or profile.role
    if new_role is not None:
        payload["role"] = new_role
    if effective_role != "athlete":
        payload["gender"] = None
    elif "gender" in changes:
        payload["gender"] = _validate_gender(changes["gender"])

    if new_email is not None and new_email != (profile.email or "").lower():
        try:
            identity.update_principal_email(db, user_id, new_email)
        except Exception:
            logger.warning(f"Auth email update failed for {user_id}; profile left unchanged")
            raise
    if new_email is not None:
        payload["email"] = new_email

    for key, value in payload.items():
        setattr(profile, key, value)
    db.flush()

    logger.info(
        "Account updated",
        extra={"extra_fields": {"actor_id": str(actor_id), "user_id": str(user_id), "fields": sorted(payload)}},
    )
    return profile


def deactivate_account(db: Session, actor_id: UUID, user_id: UUID) -> Principal:
    """
    Soft delete: suspend the principal indefinitely.

    Principal, Profile and every assignment/result row stay in place.
    """
    require_staff(db, actor_id)
    if actor_id == user_id:
        raise ForbiddenError("You cannot deactivate your own account")

    principal = identity.suspend_principal(db, user_id)
    logger.info(
        "Account deactivated",
        extra={"extra_fields": {"actor_id": str(actor_id), "user_id": str(user_id)}},
    )
    return principal


def list_active_accounts(db: Session, actor_id: UUID) -> List[Profile]:
    """Staff listing ordered by role then name, without suspended principals."""
    require_staff(db, actor_id)

    rows = (
        db.query(Profile, Principal)
        .join(Principal, Principal.id == Profile.user_id)
        .filter(Profile.role.in_(ROLES))
        .order_by(Profile.role.asc(), Profile.full_name.asc())
        .all()
    )
    return [profile for profile, principal in rows if not identity.is_suspended(principal)]


def send_password_reset(db: Session, actor_id: UUID, email: str) -> str:
    require_staff(db, actor_id)
    norm = _validate_email(email)
    link = identity.generate_recovery_link(db, norm)
    if link is None:
        raise NotFoundError("Active account", norm)
    logger.info(f"Password reset link generated by {actor_id}")
    return link


def reset_password(db: Session, token: str, new_password: str) -> Principal:
    payload = decode_password_reset_token(token)
    if not payload:
        raise ValidationError("Reset link is invalid or has expired", field="token")

    try:
        principal_id = UUID(payload.get("sub", ""))
    except ValueError:
        raise ValidationError("Reset link is invalid or has expired", field="token")

    principal = db.get(Principal, principal_id)
    if principal is None or identity.is_suspended(principal):
        raise ValidationError("Reset link is invalid or has expired", field="token")

    ok, errors = validate_password(new_password)
    if not ok:
        raise ValidationError(errors[0], field="password")

    identity.set_password(db, principal, new_password)
    return principal
