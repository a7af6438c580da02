from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from clockpay.core import rbac
from clockpay.core.deps import get_current_user
from clockpay.core.errors import success_envelope
from clockpay.models.user import User
from clockpay.schemas.event import EventFeed, EventRead
from clockpay.services.events import event_bus

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("")
def poll_events(
    after: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
) -> dict:
    events = event_bus.since(after, limit=limit)
    last_seq = events[-1].seq if events else after
    if not rbac.is_elevated(current_user):
        events = [event for event in events if event.payload.get("username") == current_user.username]
    feed = EventFeed(events=[EventRead(**event.as_dict()) for event in events], last_seq=last_seq)
    return success_envelope(feed)
