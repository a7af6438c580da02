"""Structured logging for the API and the overdue worker.

Domain code logs an event name as the message and passes its fields through
``extra``. Only the keys listed in ``CONTEXT_KEYS`` make it into the output.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from clockpay.core.security import decode_token

CONTEXT_KEYS = (
    # request
    "request_id",
    "method",
    "path",
    "status_code",
    "latency_ms",
    # caller
    "username",
    "actor",
    # ledger
    "session_id",
    "payment_id",
    "accrued_hours",
    "amount",
    "remaining",
    # jobs
    "closed",
    "status",
)


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in CONTEXT_KEYS if getattr(record, key, None) is not None}


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(record_context(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """One ``key=value`` line per record, for reading logs in a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        fields = " ".join(f"{key}={value}" for key, value in record_context(record).items())
        line = f"{_timestamp(record)} {record.levelname:<7} {record.name}: {record.getMessage()}"
        if fields:
            line = f"{line} {fields}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


FORMATTERS = {"json": JsonFormatter, "text": TextFormatter}


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    formatter_cls = FORMATTERS.get(fmt.lower())
    if formatter_cls is None:
        raise ValueError(f"Unknown log format '{fmt}'; expected one of {', '.join(FORMATTERS)}")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter_cls())
    logging.basicConfig(level=level, handlers=[handler], force=True)
    # RequestLoggingMiddleware already writes one line per request.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def bearer_subject(request: Request) -> Optional[str]:
    """Username carried by the request's bearer token, if it decodes."""
    scheme, _, token = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        subject = decode_token(token.strip()).get("sub")
    except JWTError:
        return None
    return str(subject) if subject else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ``X-Request-Id`` and logs its outcome and latency.

    A 403 for an authenticated caller is repeated on the ``security`` logger.
    """

    def __init__(self, app, logger_name: str = "request") -> None:
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)
        self.security_logger = logging.getLogger("security")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        context: Dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "username": bearer_subject(request),
        }
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            context["latency_ms"] = _elapsed_ms(start)
            self.logger.exception("unhandled_exception", extra=context)
            raise

        context.update(status_code=response.status_code, latency_ms=_elapsed_ms(start))
        self.logger.info("request", extra=context)
        if response.status_code == 403 and context["username"]:
            self.security_logger.info("forbidden", extra=context)

        response.headers["X-Request-Id"] = request_id
        return response


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
