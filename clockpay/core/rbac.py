from __future__ import annotations

from typing import Iterable

from clockpay.core.errors import Forbidden
from clockpay.models.enums import Role
from clockpay.models.user import User

ELEVATED_ROLES = {Role.OWNER}


def user_has_any_role(user: User, roles: Iterable[Role]) -> bool:
    return user.role in set(roles)


def is_elevated(user: User) -> bool:
    return user_has_any_role(user, ELEVATED_ROLES)


def require_roles(user: User, roles: Iterable[Role]) -> None:
    if not user_has_any_role(user, roles):
        raise Forbidden("Not authorised")


def ensure_can_act_for(actor: User, username: str) -> None:
    """Workers act on their own identity; elevated actors act on anyone."""
    if actor.username == username or is_elevated(actor):
        return
    raise Forbidden()
