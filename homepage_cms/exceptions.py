"""
Custom Exception Classes for the Homepage CMS engine

Every failure the engine surfaces is a ``CMSError`` carrying an HTTP status,
a machine-readable ``ErrorCode`` and a details dict, so the admin API can
render consistent error payloads.
"""

import enum
from typing import Any

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Machine-readable error codes for API clients."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    SECTION_NOT_FOUND = "RESOURCE_SECTION_NOT_FOUND"
    VERSION_NOT_FOUND = "RESOURCE_VERSION_NOT_FOUND"
    SCHEDULE_NOT_FOUND = "RESOURCE_SCHEDULE_NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    INVALID_CONTENT = "VALIDATION_INVALID_CONTENT"
    STORE_UNAVAILABLE = "SERVICE_STORE_UNAVAILABLE"
    INVALIDATION_FAILED = "SERVICE_CACHE_INVALIDATION_FAILED"
    SCHEDULE_EXECUTION_FAILED = "SERVICE_SCHEDULE_EXECUTION_FAILED"


class CMSError(Exception):
    """Base exception class for all CMS-related exceptions"""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class NotFoundError(CMSError):
    """A referenced section, version or schedule does not exist."""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None, details: dict[str, Any] | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id, **(details or {})},
        )


class SectionNotFoundError(NotFoundError):
    error_code = ErrorCode.SECTION_NOT_FOUND

    def __init__(self, section_id: Any | None = None):
        super().__init__(resource_type="Section", resource_id=section_id)


class VersionNotFoundError(NotFoundError):
    """Raised when a version is missing or belongs to another section"""

    error_code = ErrorCode.VERSION_NOT_FOUND

    def __init__(self, version_id: Any | None = None, section_id: Any | None = None):
        details = {"section_id": section_id} if section_id is not None else None
        super().__init__(resource_type="Version", resource_id=version_id, details=details)


class ScheduleNotFoundError(NotFoundError):
    error_code = ErrorCode.SCHEDULE_NOT_FOUND

    def __init__(self, schedule_id: Any | None = None):
        super().__init__(resource_type="Schedule", resource_id=schedule_id)


# ============================================================================
# Validation & State Exceptions
# ============================================================================


class InvalidStateError(CMSError):
    """The request conflicts with the current state; the caller must correct it."""

    error_code = ErrorCode.INVALID_STATE

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_409_CONFLICT, details=details)


class ContentValidationError(CMSError):
    """Raised when a content payload does not fit its section type"""

    error_code = ErrorCode.INVALID_CONTENT

    def __init__(self, section_type: str, message: str, missing: list[str] | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"section_type": section_type, "missing_fields": missing or []},
        )


# ============================================================================
# Infrastructure Exceptions
# ============================================================================


class StoreUnavailableError(CMSError):
    """The content store could not complete a read or write."""

    error_code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, operation: str, message: str | None = None, retryable: bool = True):
        super().__init__(
            message=message or f"Content store unavailable during '{operation}'",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"operation": operation, "retryable": retryable},
        )
        self.operation = operation
        self.retryable = retryable


class InvalidationFailure(CMSError):
    """
    A cache purge did not complete after a successful write.

    Never fatal to the write; the coordinator logs it and queues a retry.
    """

    error_code = ErrorCode.INVALIDATION_FAILED

    def __init__(self, event: str, failed: list[str], reason: str | None = None):
        message = f"Cache invalidation for '{event}' left {len(failed)} target(s) stale"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"event": event, "failed": failed},
        )
        self.event = event
        self.failed = failed


class ScheduleExecutionFailure(CMSError):
    """One schedule's transition failed during a sweep."""

    error_code = ErrorCode.SCHEDULE_EXECUTION_FAILED

    def __init__(self, schedule_id: int, action: str, reason: str):
        super().__init__(
            message=f"Schedule {schedule_id} failed to {action}: {reason}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"schedule_id": schedule_id, "action": action, "reason": reason},
        )
        self.schedule_id = schedule_id
        self.action = action
        self.reason = reason
