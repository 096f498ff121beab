"""
Roster medical data: emergency contacts and medications per athlete.

An athlete reads their own entries; coaching staff read and maintain
everyone's.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import ValidationError
from core.policy import Collection, Op, require, require_staff, scope_athlete_rows
from models import AthleteMedication, EmergencyContact, Profile

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require_athlete(db: Session, athlete_id: UUID) -> None:
    profile = db.get(Profile, athlete_id)
    if profile is None or profile.role != "athlete":
        raise ValidationError("Select an athlete", field="athlete_id")


def list_emergency_contacts(db: Session, actor_id: UUID, athlete_id: UUID) -> List[EmergencyContact]:
    query = db.query(EmergencyContact).filter(EmergencyContact.athlete_user_id == athlete_id)
    query = scope_athlete_rows(query, EmergencyContact.athlete_user_id, db, actor_id)
    return query.order_by(EmergencyContact.created_at.desc()).all()


def add_emergency_contact(
    db: Session,
    actor_id: UUID,
    athlete_id: UUID,
    *,
    contact_name: str,
    phone: str,
    relationship: Optional[str] = None,
    email: Optional[str] = None,
) -> EmergencyContact:
    contact = EmergencyContact(
        athlete_user_id=athlete_id,
        contact_name=_clean(contact_name),
        relationship_to_athlete=_clean(relationship),
        phone=_clean(phone),
        email=_clean(email),
    )
    require(db, Op.INSERT, Collection.EMERGENCY_CONTACT, contact, actor_id, "Only coaching staff can edit the roster")
    if not contact.contact_name:
        raise ValidationError("Contact name is required", field="contact_name")
    if not contact.phone:
        raise ValidationError("Phone is required", field="phone")
    _require_athlete(db, athlete_id)

    db.add(contact)
    db.flush()
    return contact


def delete_emergency_contact(db: Session, actor_id: UUID, contact_id: UUID) -> bool:
    require_staff(db, actor_id, "Only coaching staff can edit the roster")
    contact = db.get(EmergencyContact, contact_id)
    if contact is None:
        return False
    require(db, Op.DELETE, Collection.EMERGENCY_CONTACT, contact, actor_id, "Only coaching staff can edit the roster")
    db.delete(contact)
    db.flush()
    return True


def list_medications(db: Session, actor_id: UUID, athlete_id: UUID) -> List[AthleteMedication]:
    query = db.query(AthleteMedication).filter(AthleteMedication.athlete_user_id == athlete_id)
    query = scope_athlete_rows(query, AthleteMedication.athlete_user_id, db, actor_id)
    return query.order_by(AthleteMedication.created_at.desc()).all()


def add_medication(
    db: Session,
    actor_id: UUID,
    athlete_id: UUID,
    *,
    medication_name: str,
    dosage: Optional[str] = None,
    instructions: Optional[str] = None,
    notes: Optional[str] = None,
) -> AthleteMedication:
    medication = AthleteMedication(
        athlete_user_id=athlete_id,
        medication_name=_clean(medication_name),
        dosage=_clean(dosage),
        instructions=_clean(instructions),
        notes=_clean(notes),
    )
    require(db, Op.INSERT, Collection.MEDICATION, medication, actor_id, "Only coaching staff can edit the roster")
    if not medication.medication_name:
        raise ValidationError("Medication name is required", field="medication_name")
    _require_athlete(db, athlete_id)

    db.add(medication)
    db.flush()
    return medication


def delete_medication(db: Session, actor_id: UUID, medication_id: UUID) -> bool:
    require_staff(db, actor_id, "Only coaching staff can edit the roster")
    medication = db.get(AthleteMedication, medication_id)
    if medication is None:
        return False
    require(db, Op.DELETE, Collection.MEDICATION, medication, actor_id, "Only coaching staff can edit the roster")
    db.delete(medication)
    db.flush()
    return True
