"""
Roster medical info: emergency contacts and medications.

Athletes read their own; coaching staff read and edit everyone's.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import get_current_principal
from core.database import get_db
from models import Principal
from schemas import (
    EmergencyContactCreate,
    EmergencyContactResponse,
    MedicationCreate,
    MedicationResponse,
)
from services import roster

router = APIRouter(prefix="/v1/roster", tags=["roster"])


@router.get("/{athlete_id}/contacts", response_model=List[EmergencyContactResponse])
def list_contacts(
    athlete_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return roster.list_emergency_contacts(db, current_user.id, athlete_id)


@router.post("/{athlete_id}/contacts", response_model=EmergencyContactResponse, status_code=status.HTTP_201_CREATED)
def add_contact(
    athlete_id: UUID,
    body: EmergencyContactCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return roster.add_emergency_contact(
        db,
        current_user.id,
        athlete_id,
        contact_name=body.contact_name,
        phone=body.phone,
        relationship=body.relationship,
        email=body.email,
    )


@router.delete("/contacts/{contact_id}")
def delete_contact(
    contact_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {"success": True, "deleted": roster.delete_emergency_contact(db, current_user.id, contact_id)}


@router.get("/{athlete_id}/medications", response_model=List[MedicationResponse])
def list_medications(
    athlete_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return roster.list_medications(db, current_user.id, athlete_id)


@router.post("/{athlete_id}/medications", response_model=MedicationResponse, status_code=status.HTTP_201_CREATED)
def add_medication(
    athlete_id: UUID,
    body: MedicationCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return roster.add_medication(
        db,
        current_user.id,
        athlete_id,
        medication_name=body.medication_name,
        dosage=body.dosage,
        instructions=body.instructions,
        notes=body.notes,
    )


@router.delete("/medications/{medication_id}")
def delete_medication(
    medication_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {"success": True, "deleted": roster.delete_medication(db, current_user.id, medication_id)}
