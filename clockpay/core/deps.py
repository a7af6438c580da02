from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from clockpay.core import rbac
from clockpay.core.security import decode_token
from clockpay.db.session import get_db
from clockpay.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
logger = logging.getLogger("security")


def _log_auth_event(event: str, *, request: Request, extra: Optional[dict] = None) -> None:
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


def get_current_user(
    request: Request,
    token: str = Security(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
    except JWTError:
        _log_auth_event("token_invalid", request=request)
        raise credentials_exception

    username = payload.get("sub")
    if not username:
        _log_auth_event("token_missing_sub", request=request)
        raise credentials_exception

    user = db.query(User).filter(User.username == str(username)).first()
    if not user or not user.is_active:
        _log_auth_event("user_inactive_or_missing", request=request, extra={"username": username})
        raise credentials_exception
    return user


def require_owner(current_user: User = Depends(get_current_user)) -> User:
    rbac.require_roles(current_user, rbac.ELEVATED_ROLES)
    return current_user
