"""
Inbox change stream.

Each open inbox (one SSE connection) owns an InboxSubscription. Committed
message/participant inserts arrive from the change bus, possibly on a worker
thread, and only set a wake-up flag on the subscription's event loop. The
single consumer re-fetches thread summaries: at most one re-fetch runs at a
time, and anything that arrives while it runs collapses into one follow-up.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Optional, Set
from uuid import UUID

from core import events
from core.config import settings

logger = logging.getLogger(__name__)


class InboxSubscription:
    def __init__(self, principal_id: UUID, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.principal_id = principal_id
        self._loop = loop or asyncio.get_running_loop()
        self._pending = asyncio.Event()
        self.closed = False

    def notify(self) -> None:
        """Thread-safe: mark the inbox stale."""
        if self.closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._pending.set)
        except RuntimeError:
            # Loop already closed; the connection is gone.
            self.closed = True

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """True when a change is pending, False on timeout."""
        try:
            await asyncio.wait_for(self._pending.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def take(self) -> bool:
        """Consume the pending flag. Changes after this call trigger a new wake-up."""
        was_set = self._pending.is_set()
        self._pending.clear()
        return was_set


class InboxBroker:
    """Routes change-bus events to the subscriptions of affected principals."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[UUID, Set[InboxSubscription]] = {}
        self._installed = False

    def install(self) -> None:
        if self._installed:
            return
        events.subscribe(events.EVENT_MESSAGE_CREATED, self._on_message_created)
        events.subscribe(events.EVENT_PARTICIPANT_CREATED, self._on_participant_created)
        self._installed = True

    def uninstall(self) -> None:
        events.unsubscribe(events.EVENT_MESSAGE_CREATED, self._on_message_created)
        events.unsubscribe(events.EVENT_PARTICIPANT_CREATED, self._on_participant_created)
        self._installed = False

    def open(self, principal_id: UUID) -> InboxSubscription:
        sub = InboxSubscription(principal_id)
        with self._lock:
            self._subscriptions.setdefault(principal_id, set()).add(sub)
        logger.debug(f"Inbox subscription opened for {principal_id}")
        return sub

    def close(self, sub: InboxSubscription) -> None:
        sub.closed = True
        with self._lock:
            subs = self._subscriptions.get(sub.principal_id)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subscriptions[sub.principal_id]

    def subscriber_count(self, principal_id: Optional[UUID] = None) -> int:
        with self._lock:
            if principal_id is not None:
                return len(self._subscriptions.get(principal_id, ()))
            return sum(len(s) for s in self._subscriptions.values())

    def notify(self, principal_ids: Iterable[UUID]) -> None:
        with self._lock:
            targets = [sub for pid in set(principal_ids) for sub in self._subscriptions.get(pid, ())]
        for sub in targets:
            sub.notify()

    def _on_message_created(self, participant_ids=(), **_):
        self.notify(participant_ids)

    def _on_participant_created(self, user_id=None, **_):
        if user_id is not None:
            self.notify([user_id])


broker = InboxBroker()


def sse_event(name: str, payload: Any) -> bytes:
    return b"event: " + name.encode("utf-8") + b"\ndata: " + json.dumps(payload, default=str).encode("utf-8") + b"\n\n"


async def stream_inbox(
    sub: InboxSubscription,
    fetch: Callable[[], Any],
    *,
    heartbeat_s: Optional[float] = None,
    debounce_s: Optional[float] = None,
) -> AsyncIterator[bytes]:
    """
    Yield an initial snapshot, then one snapshot per batch of changes.

    `fetch` is a blocking callable returning a JSON-serializable snapshot; it
    runs in a worker thread so the loop keeps receiving notifications.
    """
    heartbeat_s = settings.INBOX_HEARTBEAT_S if heartbeat_s is None else heartbeat_s
    debounce_s = settings.INBOX_REFETCH_DEBOUNCE_S if debounce_s is None else debounce_s

    yield sse_event("summaries", await asyncio.to_thread(fetch))

    while not sub.closed:
        if not await sub.wait(timeout=heartbeat_s):
            yield sse_event("heartbeat", {"type": "heartbeat"})
            continue
        if debounce_s:
            await asyncio.sleep(debounce_s)
        sub.take()
        try:
            snapshot = await asyncio.to_thread(fetch)
        except Exception as e:
            logger.error(f"Inbox re-fetch failed for {sub.principal_id}: {e}", exc_info=True)
            yield sse_event("error", {"type": "error", "detail": "Could not refresh inbox"})
            continue
        yield sse_event("summaries", snapshot)
