from __future__ import annotations

from decimal import Decimal
from typing import Optional

from clockpay.models.enums import Role
from clockpay.schemas.base import ORMModel


class UserRead(ORMModel):
    id: int
    username: str
    full_name: Optional[str] = None
    role: Role
    is_active: bool
    cumulative_hours: Decimal
    cumulative_wage: Decimal


class Token(ORMModel):
    access_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    user: UserRead
