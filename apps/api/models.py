from sqlalchemy import Column, Boolean, CheckConstraint, false, Date, DateTime, ForeignKey, Numeric, Text, Time, UniqueConstraint, Index, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid
from datetime import datetime, timezone


ROLES = ("athlete", "coach", "assistant_coach")
STAFF_ROLES = ("coach", "assistant_coach")
GENDERS = ("male", "female")
ASSIGNMENT_STATUSES = ("assigned", "alternate")

# Constraint names are part of the conflict-detection contract: assignment
# upserts target them and result inserts recognise them on violation.
UQ_MEET_EVENT = "uq_meet_event_meet_event_name"
UQ_ASSIGNMENT = "uq_assignment_meet_event_athlete"
UQ_RESULT = "uq_result_meet_event_athlete"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Principal(Base):
    """
    Login identity owned by the identity provider.

    Never hard-deleted: assignments and results reference it through Profile.
    Deactivation sets banned_until far in the future.
    """

    __tablename__ = "auth_user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(Text, unique=True, nullable=False, index=True)  # stored lowercased
    password_hash = Column(Text, nullable=True)
    banned_until = Column(DateTime(timezone=True), nullable=True)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    profile = relationship("Profile", back_populates="principal", uselist=False)


class Profile(Base):
    """Application-level record for a Principal (exactly one per Principal)."""

    __tablename__ = "profile"

    user_id = Column(Uuid, ForeignKey("auth_user.id"), primary_key=True)
    full_name = Column(Text, nullable=True)
    role = Column(Text, default="athlete", server_default="athlete", nullable=False)
    # Only meaningful for athletes; always null for coaching staff.
    gender = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    principal = relationship("Principal", back_populates="profile")

    __table_args__ = (
        CheckConstraint("role in ('athlete', 'coach', 'assistant_coach')", name="ck_profile_role"),
        CheckConstraint("gender is null or gender in ('male', 'female')", name="ck_profile_gender"),
        Index("ix_profile_role_name", "role", "full_name"),
    )

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class Meet(Base):
    __tablename__ = "meet"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    location = Column(Text, nullable=True)
    meet_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=True)
    bus_time = Column(Time, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    meet_events = relationship("MeetEvent", back_populates="meet", cascade="all, delete-orphan")


class Event(Base):
    """Catalog of event names offered when assigning (e.g. '100m', 'Long Jump')."""

    __tablename__ = "event"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, unique=True, nullable=False)


class MeetEvent(Base):
    """An event held at a specific meet; unique per (meet, event name)."""

    __tablename__ = "meet_event"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meet_id = Column(Uuid, ForeignKey("meet.id", ondelete="CASCADE"), nullable=False, index=True)
    event_name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    meet = relationship("Meet", back_populates="meet_events")

    __table_args__ = (
        UniqueConstraint("meet_id", "event_name", name=UQ_MEET_EVENT),
    )


class Assignment(Base):
    """Planned participation; at most one per (meet event, athlete), status mutable."""

    __tablename__ = "assignment"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meet_event_id = Column(Uuid, ForeignKey("meet_event.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(Uuid, ForeignKey("profile.user_id"), nullable=False, index=True)
    status = Column(Text, nullable=False, default="assigned")
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=True)

    meet_event = relationship("MeetEvent")
    athlete = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("meet_event_id", "athlete_id", name=UQ_ASSIGNMENT),
        CheckConstraint("status in ('assigned', 'alternate')", name="ck_assignment_status"),
    )


class Result(Base):
    """Attested outcome; at most one per (meet event, athlete), never merged."""

    __tablename__ = "result"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meet_event_id = Column(Uuid, ForeignKey("meet_event.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(Uuid, ForeignKey("profile.user_id"), nullable=False, index=True)
    mark = Column(Text, nullable=False)  # free text: "10.90", "4:32.1", "5.21m"
    place = Column(Numeric, nullable=True)
    points = Column(Numeric, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    meet_event = relationship("MeetEvent")
    athlete = relationship("Profile")

    __table_args__ = (
        UniqueConstraint("meet_event_id", "athlete_id", name=UQ_RESULT),
    )


class Announcement(Base):
    __tablename__ = "announcement"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=True)
    pinned = Column(Boolean, default=False, server_default=false(), nullable=False)
    created_by = Column(Uuid, ForeignKey("auth_user.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)


class MessageThread(Base):
    __tablename__ = "message_thread"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(Text, nullable=False, default="direct")  # 'direct' | 'group'
    created_by = Column(Uuid, ForeignKey("auth_user.id"), nullable=False)
    subject = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    participants = relationship("MessageThreadParticipant", back_populates="thread")


class MessageThreadParticipant(Base):
    __tablename__ = "message_thread_participant"

    thread_id = Column(Uuid, ForeignKey("message_thread.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Uuid, ForeignKey("auth_user.id"), primary_key=True, index=True)
    added_by = Column(Uuid, ForeignKey("auth_user.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    last_read_at = Column(DateTime(timezone=True), nullable=True)

    thread = relationship("MessageThread", back_populates="participants")


class Message(Base):
    """Immutable once created: no update or delete path exists."""

    __tablename__ = "message"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    thread_id = Column(Uuid, ForeignKey("message_thread.id", ondelete="CASCADE"), nullable=False)
    sender_user_id = Column(Uuid, ForeignKey("auth_user.id"), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_message_thread_created", "thread_id", "created_at"),
    )


class EmergencyContact(Base):
    __tablename__ = "emergency_contact"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    athlete_user_id = Column(Uuid, ForeignKey("profile.user_id"), nullable=False, index=True)
    contact_name = Column(Text, nullable=False)
    relationship_to_athlete = Column("relationship", Text, nullable=True)
    phone = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)


class AthleteMedication(Base):
    __tablename__ = "athlete_medication"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    athlete_user_id = Column(Uuid, ForeignKey("profile.user_id"), nullable=False, index=True)
    medication_name = Column(Text, nullable=False)
    dosage = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
