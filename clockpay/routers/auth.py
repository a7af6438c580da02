from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from clockpay.core.deps import get_current_user
from clockpay.core.errors import success_envelope
from clockpay.core.security import create_access_token, verify_password
from clockpay.db.session import get_db
from clockpay.models.user import User
from clockpay.schemas.auth import LoginResponse, UserRead

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("security")


def _log_auth_event(event: str, *, request: Request, extra: dict | None = None) -> None:
    payload = {
        "event": event,
        "request_id": request.headers.get("x-request-id"),
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else None,
    }
    if extra:
        payload.update(extra)
    logger.info(json.dumps(payload, default=str))


@router.post("/login")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
) -> dict:
    username = form_data.username.strip()
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        _log_auth_event("login_failed", request=request, extra={"username": username})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password")
    if not user.is_active:
        _log_auth_event("login_inactive", request=request, extra={"username": username})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")

    token = create_access_token({"sub": user.username, "role": user.role.value})
    _log_auth_event("login_success", request=request, extra={"username": username})
    response = LoginResponse(access_token=token, user=UserRead.model_validate(user))
    return success_envelope(response, message="Logged in")


@router.get("/me")
def me(current_user: User = Depends(get_current_user)) -> dict:
    return success_envelope(UserRead.model_validate(current_user))
