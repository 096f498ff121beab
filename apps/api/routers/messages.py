"""
Messaging inbox endpoints.

Every read is scoped to threads the caller participates in. The /stream
endpoint pushes fresh thread summaries whenever a message or participant row
affecting the caller is committed (SSE over fetch).
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.auth import get_current_principal, resolve_principal, security
from core.database import SessionLocal, get_db
from models import Principal
from schemas import (
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    ThreadCreate,
    ThreadCreatedResponse,
    ThreadSummaryResponse,
)
from services import messaging
from services.inbox_events import broker, stream_inbox

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/messages", tags=["messages"])


@router.get("/threads", response_model=List[ThreadSummaryResponse])
def list_threads(
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return messaging.list_thread_summaries(db, current_user.id)


@router.post("/threads", response_model=ThreadCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_thread(
    body: ThreadCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return messaging.create_thread(
        db,
        current_user.id,
        participant_ids=body.participant_ids,
        subject=body.subject,
        first_message=body.first_message,
    )


@router.get("/threads/{thread_id}/messages", response_model=List[MessageResponse])
def list_messages(
    thread_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return messaging.list_messages(db, current_user.id, thread_id)


@router.post("/threads/{thread_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    thread_id: UUID,
    body: MessageCreate,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    message = messaging.send_message(db, current_user.id, thread_id, body.body)
    return MessageResponse(
        id=message.id,
        thread_id=message.thread_id,
        sender_user_id=message.sender_user_id,
        body=message.body,
        created_at=message.created_at,
    )


@router.post("/threads/{thread_id}/read", response_model=MarkReadResponse)
def mark_read(
    thread_id: UUID,
    current_user: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    last_read_at = messaging.mark_thread_read(db, current_user.id, thread_id)
    return MarkReadResponse(thread_id=thread_id, last_read_at=last_read_at)


@router.get("/stream")
async def stream(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    """
    Server-sent inbox updates.

    Sends a `summaries` event on connect and after each batch of changes,
    and a `heartbeat` while idle. The caller is resolved on a short-lived
    session; no connection is held while the stream is open.
    """
    db = SessionLocal()
    try:
        principal_id = resolve_principal(db, credentials).id
    finally:
        db.close()

    def fetch():
        db = SessionLocal()
        try:
            summaries = messaging.list_thread_summaries(db, principal_id)
            return [ThreadSummaryResponse.model_validate(s).model_dump(mode="json") for s in summaries]
        finally:
            db.close()

    async def _gen():
        sub = broker.open(principal_id)
        try:
            async for chunk in stream_inbox(sub, fetch):
                yield chunk
        finally:
            broker.close(sub)
            logger.debug(f"Inbox stream closed for {principal_id}")

    return StreamingResponse(
        _gen(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
