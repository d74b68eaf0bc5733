"""
Request logging and log formatting.

The middleware binds a request id and the acting admin to the current
context, so every log line written while serving a request (services,
store, cache coordinator) can be correlated with the access line.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
actor_id_var: ContextVar[str] = ContextVar("actor_id", default="")

ACTOR_HEADER = "X-Actor-Id"
REQUEST_ID_HEADER = "X-Request-ID"

# Health checks and metric scrapes would drown the access log
QUIET_PATHS = frozenset({"/health", "/metrics"})

EXTRA_FIELDS = (
    "actor_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
    "error_code",
    "details",
    "errors",
)

NOISY_LOGGERS = {
    "apscheduler": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


class RequestIdFilter(logging.Filter):
    """Copy the bound request id, and actor when known, onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        actor_id = actor_id_var.get("")
        if actor_id and not hasattr(record, "actor_id"):
            record.actor_id = actor_id
        return True


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        payload.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def status_log_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One access line per request, at a level matching the response status."""

    def __init__(self, app: ASGIApp, logger_name: str = "homepage_cms.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        actor_id = request.headers.get(ACTOR_HEADER, "")
        request_token = request_id_var.set(request_id)
        actor_token = actor_id_var.set(actor_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            self._access(request, 500, started, actor_id, error=str(e))
            raise
        finally:
            request_id_var.reset(request_token)
            actor_id_var.reset(actor_token)

        response.headers[REQUEST_ID_HEADER] = request_id
        self._access(request, response.status_code, started, actor_id)
        return response

    def _access(
        self, request: Request, status_code: int, started: float, actor_id: str, error: str | None = None
    ) -> None:
        if request.url.path in QUIET_PATHS:
            return

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": elapsed_ms,
            "client_ip": client_address(request),
        }
        if actor_id:
            extra["actor_id"] = actor_id

        message = f"{request.method} {request.url.path} -> {status_code} in {elapsed_ms}ms"
        if error:
            message = f"{message} ({error})"
        self.logger.log(status_log_level(status_code), message, extra=extra)


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Route all logging through a single stderr handler.

    Args:
        log_level: Level for the service's own loggers
        json_format: One JSON object per line; plain text otherwise
    """
    level = logging.getLevelName(log_level.upper())

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        StructuredFormatter()
        if json_format
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s")
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("homepage_cms").setLevel(level)
    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
