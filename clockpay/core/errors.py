"""Domain error taxonomy and the handlers that render it as the API envelope."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ClockpayError(Exception):
    code = "INTERNAL_ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, *, data: Any = None) -> None:
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class InvalidArgument(ClockpayError):
    code = "INVALID_ARGUMENT"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid argument"


class NotFound(ClockpayError):
    code = "NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class WorkerNotFound(ClockpayError):
    code = "WORKER_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Worker not found"


class Forbidden(ClockpayError):
    code = "FORBIDDEN"
    http_status = status.HTTP_403_FORBIDDEN
    default_message = "Not authorised to act for this worker"


class InvalidTransition(ClockpayError):
    code = "INVALID_TRANSITION"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Session is not in a state that allows this action"


class ConflictingSession(ClockpayError):
    code = "CONFLICTING_SESSION"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Another session is still open for this worker"


class ExceedsRemainingBalance(ClockpayError):
    code = "EXCEEDS_REMAINING_BALANCE"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Payment exceeds the remaining wage balance"

    def __init__(self, remaining: Decimal) -> None:
        self.remaining = remaining
        super().__init__(
            f"{self.default_message}. Remaining: {remaining}",
            data={"remaining": remaining},
        )


class Conflict(ClockpayError):
    """Store-level conflict; the caller may retry."""

    code = "CONFLICT"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Concurrent update detected, please retry"


def success_envelope(data: Any, message: str = "Success") -> dict:
    return {"status": "success", "message": message, "data": data}


def _error_response(status_code: int, code: str, message: str, data: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {"status": "error", "code": code, "message": message, "data": data},
            custom_encoder={Decimal: float},
        ),
    )


async def _handle_domain_error(request: Request, exc: ClockpayError) -> JSONResponse:
    return _error_response(exc.http_status, exc.code, exc.message, exc.data)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        InvalidArgument.code,
        "Validation failed",
        {"errors": exc.errors()},
    )


async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = {
        status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
        status.HTTP_403_FORBIDDEN: Forbidden.code,
        status.HTTP_404_NOT_FOUND: NotFound.code,
    }.get(exc.status_code, "HTTP_ERROR")
    response = _error_response(exc.status_code, code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClockpayError, _handle_domain_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
