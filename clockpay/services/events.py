"""Best-effort session event feed.

Events go into a bounded in-process ring buffer (polled by dashboards through
``/api/events``) and are fanned out to registered listeners. Delivery is not
guaranteed: a full buffer drops the oldest events and listener failures are
logged and ignored, so consumers must tolerate gaps and duplicates.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from clockpay.core.settings import settings
from clockpay.models.work_session import WorkSession

logger = logging.getLogger(__name__)

SESSION_STARTED = "session.started"
SESSION_PAUSED = "session.paused"
SESSION_RESUMED = "session.resumed"
SESSION_ENDED = "session.ended"
SESSION_AUTO_ENDED = "session.auto_ended"


@dataclass(frozen=True)
class Event:
    seq: int
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "name": self.name,
            "payload": self.payload,
            "emitted_at": self.emitted_at,
        }


Listener = Callable[[Event], None]


class EventBus:
    def __init__(self, maxlen: int = 500) -> None:
        self._events: Deque[Event] = deque(maxlen=maxlen)
        self._listeners: List[Listener] = []
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, name: str, payload: Dict[str, Any]) -> Event:
        with self._lock:
            event = Event(seq=next(self._counter), name=name, payload=payload)
            self._events.append(event)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("event_listener_failed", extra={"status": name})
        return event

    def since(self, after: int = 0, *, limit: int = 100) -> List[Event]:
        with self._lock:
            events = [event for event in self._events if event.seq > after]
        return events[:limit]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


event_bus = EventBus(maxlen=settings.event_buffer_size)


def session_payload(row: WorkSession, *, auto: bool = False) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": row.id,
        "username": row.username,
        "started_at": row.started_at,
        "ended_at": row.ended_at,
        "accrued_hours": row.accrued_hours,
        "status": row.status.value,
    }
    if auto:
        payload["auto"] = True
    return payload


def emit_session_event(name: str, row: WorkSession, *, auto: bool = False, bus: Optional[EventBus] = None) -> None:
    (bus or event_bus).publish(name, session_payload(row, auto=auto))
