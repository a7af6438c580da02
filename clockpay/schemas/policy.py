from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import Field

from clockpay.schemas.base import ORMModel


class PolicyRead(ORMModel):
    hourly_rate: Decimal
    auto_pause_minutes: int
    auto_pause_enabled: bool


class PolicyUpdate(ORMModel):
    hourly_rate: Optional[Decimal] = Field(default=None, ge=1000)
    auto_pause_minutes: Optional[int] = Field(default=None, ge=1, le=120)
    auto_pause_enabled: Optional[bool] = None


class EffectivePolicyRead(ORMModel):
    scope: str
    username: str
    effective: PolicyRead
    sources: Dict[str, Dict[str, Any]]
    provenance: Dict[str, str]
