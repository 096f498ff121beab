from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date, time
from decimal import Decimal
from uuid import UUID
from typing import Optional, List, Union, Literal


# --- auth ------------------------------------------------------------------

class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class SendPasswordResetRequest(BaseModel):
    email: str


class SendPasswordResetResponse(BaseModel):
    success: bool = True
    action_link: str


# --- profiles / accounts ---------------------------------------------------

class AccountCreate(BaseModel):
    full_name: str
    email: str
    password: str
    role: str
    gender: Optional[str] = None  # required for athletes, ignored otherwise
    phone: Optional[str] = None


class AccountUpdate(BaseModel):
    """Any subset of fields; omitted fields are left alone."""
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    gender: Optional[str] = None


class ProfileResponse(BaseModel):
    user_id: UUID
    full_name: Optional[str]
    role: str
    gender: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MeResponse(ProfileResponse):
    is_staff: bool = False


class DeactivateResponse(BaseModel):
    success: bool = True
    user_id: UUID
    banned_until: datetime


# --- meets / events ----------------------------------------------------------

class MeetCreate(BaseModel):
    name: str
    meet_date: date
    location: Optional[str] = None
    start_time: Optional[time] = None
    bus_time: Optional[time] = None
    notes: Optional[str] = None


class MeetUpdate(BaseModel):
    name: Optional[str] = None
    meet_date: Optional[date] = None
    location: Optional[str] = None
    start_time: Optional[time] = None
    bus_time: Optional[time] = None
    notes: Optional[str] = None


class MeetEventResponse(BaseModel):
    id: UUID
    meet_id: UUID
    event_name: str

    model_config = ConfigDict(from_attributes=True)


class MeetResponse(BaseModel):
    id: UUID
    name: str
    meet_date: date
    location: Optional[str] = None
    start_time: Optional[time] = None
    bus_time: Optional[time] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MeetDetailResponse(MeetResponse):
    events: List[MeetEventResponse] = []


class EventCreate(BaseModel):
    name: str


class EventResponse(BaseModel):
    id: UUID
    name: str

    model_config = ConfigDict(from_attributes=True)


# --- assignments -------------------------------------------------------------

class AssignmentUpsert(BaseModel):
    event_name: str
    athlete_id: UUID
    status: str = "assigned"


class AssignmentResponse(BaseModel):
    id: UUID
    meet_event_id: UUID
    event_name: str
    athlete_id: UUID
    athlete_name: Optional[str] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class AssignmentUpsertResponse(BaseModel):
    outcome: Literal["created", "unchanged", "updated"]
    message: str
    old_status: Optional[str] = None
    new_status: str
    assignment: AssignmentResponse


# --- results -----------------------------------------------------------------

class ResultCreate(BaseModel):
    meet_event_id: UUID
    athlete_id: UUID
    mark: str
    # Text is accepted as typed into the form; blank means "not provided".
    place: Optional[Union[str, int, float]] = None
    points: Optional[Union[str, int, float]] = None
    notes: Optional[str] = None


class ResultResponse(BaseModel):
    id: UUID
    meet_event_id: UUID
    meet_id: UUID
    meet_name: str
    meet_date: Optional[date] = None
    event_name: str
    athlete_id: UUID
    athlete_name: Optional[str] = None
    mark: str
    place: Optional[Decimal] = None
    points: Optional[Decimal] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# --- announcements -----------------------------------------------------------

class AnnouncementCreate(BaseModel):
    title: str
    body: Optional[str] = None
    pinned: bool = False


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    pinned: Optional[bool] = None


class AnnouncementResponse(BaseModel):
    id: UUID
    title: str
    body: Optional[str] = None
    pinned: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- roster ------------------------------------------------------------------

class EmergencyContactCreate(BaseModel):
    contact_name: str
    phone: str
    relationship: Optional[str] = None
    email: Optional[str] = None


class EmergencyContactResponse(BaseModel):
    id: UUID
    athlete_user_id: UUID
    contact_name: str
    relationship: Optional[str] = Field(default=None, validation_alias="relationship_to_athlete")
    phone: str
    email: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MedicationCreate(BaseModel):
    medication_name: str
    dosage: Optional[str] = None
    instructions: Optional[str] = None
    notes: Optional[str] = None


class MedicationResponse(BaseModel):
    id: UUID
    athlete_user_id: UUID
    medication_name: str
    dosage: Optional[str] = None
    instructions: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- messaging ---------------------------------------------------------------

class ThreadCreate(BaseModel):
    participant_ids: List[UUID]
    subject: Optional[str] = None
    first_message: Optional[str] = None


class MessageCreate(BaseModel):
    body: str


class ParticipantResponse(BaseModel):
    user_id: UUID
    full_name: Optional[str] = None
    role: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    id: UUID
    thread_id: UUID
    sender_user_id: UUID
    sender_name: Optional[str] = None
    body: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ThreadSummaryResponse(BaseModel):
    id: UUID
    type: str
    subject: Optional[str] = None
    created_by: UUID
    created_at: datetime
    participants: List[ParticipantResponse] = []
    last_message: Optional[MessageResponse] = None
    unread_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class ThreadCreatedResponse(BaseModel):
    id: UUID
    type: str
    subject: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MarkReadResponse(BaseModel):
    thread_id: UUID
    last_read_at: datetime


# --- assistant ---------------------------------------------------------------

class ChatTurn(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    history: List[ChatTurn] = []


class ChatResponse(BaseModel):
    reply: str
    error: bool = False
