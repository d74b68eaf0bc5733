"""
API error rendering.

Every failure leaves the service as one JSON shape:

    {"error": {"status_code": 409, "error_code": "INVALID_STATE",
               "message": "...", "type": "Conflict",
               "details": {...}, "path": "/api/v1/admin/homepage/...",
               "request_id": "..."}}

Retryable store outages also carry a ``Retry-After`` header so editors'
clients can back off.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from homepage_cms.exceptions import CMSError, ErrorCode, StoreUnavailableError
from homepage_cms.middleware.logging import request_id_var

logger = logging.getLogger(__name__)

ERROR_TYPES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Validation Error",
    500: "Internal Server Error",
    503: "Service Unavailable",
}

HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_FAILED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    409: ErrorCode.INVALID_STATE,
    422: ErrorCode.VALIDATION_FAILED,
    500: ErrorCode.INTERNAL_ERROR,
    503: ErrorCode.STORE_UNAVAILABLE,
}

STORE_RETRY_AFTER_SECONDS = 1


def get_http_error_code(status_code: int) -> str:
    return HTTP_ERROR_CODES.get(status_code, ErrorCode.UNKNOWN_ERROR).value


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": ERROR_TYPES.get(status_code, "Error"),
    }
    if error_code:
        body["error_code"] = ErrorCode(error_code).value
    if details:
        body["details"] = details
    if path:
        body["path"] = path
    request_id = request_id_var.get("")
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


async def cms_exception_handler(request: Request, exc: CMSError) -> JSONResponse:
    """Engine errors: server-side failures log at ERROR, caller mistakes at WARNING."""
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        f"{exc.error_code.value}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, "path": request.url.path},
    )

    headers = None
    if isinstance(exc, StoreUnavailableError) and exc.retryable:
        headers = {"Retry-After": str(STORE_RETRY_AFTER_SECONDS)}

    return create_error_response(
        exc.status_code, exc.message, exc.error_code, exc.details or None, request.url.path, headers
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return create_error_response(
        exc.status_code, str(exc.detail), get_http_error_code(exc.status_code), path=request.url.path
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError | PydanticValidationError
) -> JSONResponse:
    # "body" is noise in the field path of request payload errors
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}", extra={"errors": errors})
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        {"validation_errors": errors},
        request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else is a 500 whose message never leaks internals."""
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}")
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CMSError, cms_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
