"""
Messaging inbox.

Threads are opened by coaching staff; any participant may post. Messages are
immutable. Every read is scoped to threads the requester participates in, so a
non-participant simply sees nothing.

Committed message and participant inserts are published on the change bus
(core.events) for the inbox stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from core.events import EVENT_MESSAGE_CREATED, EVENT_PARTICIPANT_CREATED, emit_after_commit
from core.exceptions import NotFoundError, ValidationError
from core.policy import Collection, Op, require, require_staff, scope_thread_rows
from models import Message, MessageThread, MessageThreadParticipant, Profile
from services.identity import as_utc

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "New thread"
SUBJECT_MAX_LENGTH = 120


@dataclass
class ParticipantView:
    user_id: UUID
    full_name: Optional[str]
    role: Optional[str]


@dataclass
class MessageView:
    id: UUID
    thread_id: UUID
    sender_user_id: UUID
    sender_name: Optional[str]
    body: str
    created_at: datetime


@dataclass
class ThreadSummary:
    id: UUID
    type: str
    subject: Optional[str]
    created_by: UUID
    created_at: datetime
    participants: List[ParticipantView] = field(default_factory=list)
    last_message: Optional[MessageView] = None
    unread_count: int = 0

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message is not None:
            return as_utc(self.last_message.created_at)
        return as_utc(self.created_at)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _participant_ids(db: Session, thread_id: UUID) -> List[UUID]:
    rows = db.query(MessageThreadParticipant.user_id).filter(MessageThreadParticipant.thread_id == thread_id).all()
    return [r[0] for r in rows]


def create_thread(
    db: Session,
    actor_id: UUID,
    *,
    participant_ids: Sequence[UUID],
    subject: Optional[str] = None,
    first_message: Optional[str] = None,
) -> MessageThread:
    """
    Open a thread with the given recipients (the creator is always included).

    One recipient makes a direct thread, more make a group thread. The first
    message, if any, is posted after every participant has been added.
    """
    require_staff(db, actor_id, "Only coaching staff can start threads")

    recipients: List[UUID] = []
    for pid in participant_ids:
        if pid != actor_id and pid not in recipients:
            recipients.append(pid)
    if not recipients:
        raise ValidationError("Select at least one recipient", field="participant_ids")

    known = {r[0] for r in db.query(Profile.user_id).filter(Profile.user_id.in_(recipients)).all()}
    missing = [str(pid) for pid in recipients if pid not in known]
    if missing:
        raise ValidationError(f"Unknown recipient(s): {', '.join(missing)}", field="participant_ids")

    clean_subject = (subject or "").strip() or DEFAULT_SUBJECT
    thread = MessageThread(
        type="direct" if len(recipients) == 1 else "group",
        created_by=actor_id,
        subject=clean_subject[:SUBJECT_MAX_LENGTH],
    )
    require(db, Op.INSERT, Collection.THREAD, thread, actor_id, "Only coaching staff can start threads")
    db.add(thread)
    db.flush()

    now = _now()
    for user_id in [actor_id] + recipients:
        participant = MessageThreadParticipant(
            thread_id=thread.id,
            user_id=user_id,
            added_by=actor_id,
            last_read_at=now if user_id == actor_id else None,
        )
        require(db, Op.INSERT, Collection.PARTICIPANT, participant, actor_id)
        db.add(participant)
        db.flush()
        emit_after_commit(db, EVENT_PARTICIPANT_CREATED, thread_id=thread.id, user_id=user_id)

    logger.info(
        "Thread created",
        extra={"extra_fields": {"thread_id": str(thread.id), "created_by": str(actor_id), "participants": len(recipients) + 1}},
    )

    if first_message and first_message.strip():
        send_message(db, actor_id, thread.id, first_message)
    return thread


def send_message(db: Session, actor_id: UUID, thread_id: UUID, body: str) -> Message:
    text = (body or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty", field="body")

    message = Message(thread_id=thread_id, sender_user_id=actor_id, body=text, created_at=_now())
    require(db, Op.INSERT, Collection.MESSAGE, message, actor_id, "You are not a participant in this thread")
    db.add(message)

    own = db.get(MessageThreadParticipant, (thread_id, actor_id))
    if own is not None:
        own.last_read_at = message.created_at
    db.flush()

    emit_after_commit(
        db,
        EVENT_MESSAGE_CREATED,
        thread_id=thread_id,
        message_id=message.id,
        sender_user_id=actor_id,
        participant_ids=_participant_ids(db, thread_id),
    )
    return message


def list_messages(db: Session, actor_id: UUID, thread_id: UUID) -> List[MessageView]:
    """Messages of a thread, oldest first. Empty for non-participants."""
    query = (
        db.query(Message, Profile.full_name)
        .outerjoin(Profile, Profile.user_id == Message.sender_user_id)
        .filter(Message.thread_id == thread_id)
    )
    query = scope_thread_rows(query, Message.thread_id, actor_id)
    rows = query.order_by(Message.created_at.asc(), Message.id.asc()).all()
    return [
        MessageView(
            id=m.id,
            thread_id=m.thread_id,
            sender_user_id=m.sender_user_id,
            sender_name=name,
            body=m.body,
            created_at=m.created_at,
        )
        for m, name in rows
    ]


def mark_thread_read(db: Session, actor_id: UUID, thread_id: UUID) -> datetime:
    participant = db.get(MessageThreadParticipant, (thread_id, actor_id))
    if participant is None:
        raise NotFoundError("Thread", str(thread_id))
    require(db, Op.UPDATE, Collection.PARTICIPANT, participant, actor_id)
    participant.last_read_at = _now()
    db.flush()
    return participant.last_read_at


def list_thread_summaries(db: Session, actor_id: UUID) -> List[ThreadSummary]:
    """Threads the requester belongs to, most recently active first."""
    threads = scope_thread_rows(db.query(MessageThread), MessageThread.id, actor_id).all()
    if not threads:
        return []
    thread_ids = [t.id for t in threads]

    participants: Dict[UUID, List[ParticipantView]] = {tid: [] for tid in thread_ids}
    rows = (
        db.query(MessageThreadParticipant.thread_id, MessageThreadParticipant.user_id, Profile.full_name, Profile.role)
        .outerjoin(Profile, Profile.user_id == MessageThreadParticipant.user_id)
        .filter(MessageThreadParticipant.thread_id.in_(thread_ids))
        .order_by(Profile.full_name.asc())
        .all()
    )
    for thread_id, user_id, full_name, role in rows:
        participants[thread_id].append(ParticipantView(user_id=user_id, full_name=full_name, role=role))

    latest_at = (
        db.query(Message.thread_id, func.max(Message.created_at).label("latest_at"))
        .filter(Message.thread_id.in_(thread_ids))
        .group_by(Message.thread_id)
        .subquery()
    )
    latest: Dict[UUID, MessageView] = {}
    rows = (
        db.query(Message, Profile.full_name)
        .join(latest_at, and_(Message.thread_id == latest_at.c.thread_id, Message.created_at == latest_at.c.latest_at))
        .outerjoin(Profile, Profile.user_id == Message.sender_user_id)
        .all()
    )
    for m, name in rows:
        latest[m.thread_id] = MessageView(
            id=m.id,
            thread_id=m.thread_id,
            sender_user_id=m.sender_user_id,
            sender_name=name,
            body=m.body,
            created_at=m.created_at,
        )

    own = and_(
        MessageThreadParticipant.thread_id == Message.thread_id,
        MessageThreadParticipant.user_id == actor_id,
    )
    unread = dict(
        db.query(Message.thread_id, func.count(Message.id))
        .join(MessageThreadParticipant, own)
        .filter(
            Message.thread_id.in_(thread_ids),
            Message.sender_user_id != actor_id,
            or_(
                MessageThreadParticipant.last_read_at.is_(None),
                Message.created_at > MessageThreadParticipant.last_read_at,
            ),
        )
        .group_by(Message.thread_id)
        .all()
    )

    summaries = [
        ThreadSummary(
            id=t.id,
            type=t.type,
            subject=t.subject,
            created_by=t.created_by,
            created_at=t.created_at,
            participants=participants[t.id],
            last_message=latest.get(t.id),
            unread_count=int(unread.get(t.id, 0)),
        )
        for t in threads
    ]
    summaries.sort(key=lambda s: s.last_activity_at, reverse=True)
    return summaries


def total_unread(db: Session, actor_id: UUID) -> int:
    return sum(s.unread_count for s in list_thread_summaries(db, actor_id))
