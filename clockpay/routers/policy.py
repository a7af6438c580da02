from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clockpay.core import rbac
from clockpay.core.deps import get_current_user, require_owner
from clockpay.core.errors import success_envelope
from clockpay.db.session import get_db
from clockpay.models.user import User
from clockpay.schemas.policy import EffectivePolicyRead, PolicyRead, PolicyUpdate
from clockpay.services import policy as policy_service

router = APIRouter(prefix="/api/policy", tags=["policy"])


def _effective(effective: policy_service.EffectivePolicy) -> EffectivePolicyRead:
    return EffectivePolicyRead.model_validate(effective.as_dict())


@router.get("")
def get_global_policy(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    values = policy_service.get_global(db)
    return success_envelope(PolicyRead(**values.as_dict()))


@router.patch("")
def update_global_policy(
    payload: PolicyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    values = policy_service.update_global(db, payload.model_dump(exclude_none=True))
    return success_envelope(PolicyRead(**values.as_dict()), message="Global policy updated")


@router.get("/effective")
def get_effective_policy(
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    target = (username or "").strip() or current_user.username
    rbac.ensure_can_act_for(current_user, target)
    return success_envelope(_effective(policy_service.get_effective(db, target)))


@router.put("/overrides/{username}")
def set_override(
    username: str,
    payload: PolicyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    effective = policy_service.set_override(db, username, payload.model_dump(exclude_none=True))
    return success_envelope(_effective(effective), message="Override saved")


@router.delete("/overrides/{username}")
def clear_override(
    username: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    effective = policy_service.clear_override(db, username)
    return success_envelope(_effective(effective), message="Override cleared")
