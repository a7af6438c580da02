from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from clockpay.schemas.base import ORMModel


class EventRead(ORMModel):
    seq: int
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime


class EventFeed(ORMModel):
    events: List[EventRead]
    last_seq: int
