"""
In-process change notifications.

A small emitter, plus a session hook that publishes queued events only once
the surrounding transaction has committed, so listeners never see rows that a
rollback later discarded. The inbox stream subscribes here.
"""
import logging
from typing import Callable, Dict, List

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Event registry: event_name -> list of handlers
_event_handlers: Dict[str, List[Callable]] = {}

_PENDING_KEY = "pending_change_events"

EVENT_MESSAGE_CREATED = "message.created"
EVENT_PARTICIPANT_CREATED = "participant.created"


def subscribe(event_name: str, handler: Callable):
    """
    Subscribe a handler function to an event.

    Example:
        subscribe(EVENT_MESSAGE_CREATED, on_message)
    """
    _event_handlers.setdefault(event_name, []).append(handler)
    logger.debug(f"Subscribed handler to event: {event_name}")


def unsubscribe(event_name: str, handler: Callable):
    handlers = _event_handlers.get(event_name, [])
    if handler in handlers:
        handlers.remove(handler)


def emit(event_name: str, **kwargs):
    """
    Emit an event, calling all subscribed handlers.

    A failing handler is logged and does not stop the others.
    """
    for handler in list(_event_handlers.get(event_name, [])):
        try:
            handler(**kwargs)
        except Exception as e:
            logger.error(f"Error in event handler for {event_name}: {e}", exc_info=True)


def emit_after_commit(session: Session, event_name: str, **kwargs):
    """Queue an event on the session; it fires after a successful commit."""
    session.info.setdefault(_PENDING_KEY, []).append((event_name, kwargs))


@event.listens_for(Session, "after_commit")
def _flush_pending(session: Session):
    pending = session.info.pop(_PENDING_KEY, [])
    for event_name, kwargs in pending:
        emit(event_name, **kwargs)


@event.listens_for(Session, "after_soft_rollback")
def _drop_pending(session: Session, previous_transaction):
    if previous_transaction.parent is None:
        session.info.pop(_PENDING_KEY, None)
