"""
DarkMode Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions, one per HTTP error class.
Why:   Services raise a typed error carrying its own status code and a
       machine-readable code; a single handler in main.py renders them.
How:   Each exception carries a user-safe message and an optional context
       dict (logged, and returned only outside production).
Who:   Raised by services and dependencies; caught by the global handler.

Exception Hierarchy:
    AppError (base)                     → status_code on the class
    ├── BadRequestError                 → 400
    ├── UnauthorizedError               → 401
    ├── ForbiddenError                  → 403
    ├── NotFoundError                   → 404
    ├── ConflictError                   → 409
    ├── TooManyRequestsError            → 429
    │   ├── LimitExceededError          → 429 (plan limit)
    │   └── RateLimitExceededError      → 429 (per-IP window)
    ├── InternalError                   → 500
    │   ├── WebhookProcessingError      → 500 (sender retries)
    │   └── FileStorageError            → 500
    └── ExternalServiceError            → 500 (billing processor failures)
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:      User-facing error description (safe to return)
        status_code:  HTTP status the global handler responds with
        code:         Machine-readable error code, e.g. "LIMIT_EXCEEDED"
        context:      Debug info, logged server-side
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.context = context or {}
        if code:
            self.code = code
        super().__init__(self.message)


class BadRequestError(AppError):
    """Malformed or missing input the client can fix."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(
        self,
        message: str = "Bad request",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(AppError):
    """Missing, invalid or expired credential, or a wrong password."""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class ForbiddenError(AppError):
    """Authenticated, but the account's plan does not allow the operation."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class NotFoundError(AppError):
    """
    Raised when a requested resource does not exist.

    Lookups are always scoped to the requesting account, so another tenant's
    resource is reported as not found rather than forbidden.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message or f"{resource} not found", context=ctx)


class ConflictError(AppError):
    """Duplicate resource, e.g. registering an email that already exists."""

    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str = "Conflict", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class TooManyRequestsError(AppError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after is not None:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class LimitExceededError(TooManyRequestsError):
    """
    Raised when a plan limit blocks a new session or document.

    Examples: the daily session cap is reached, or minutes_used has reached
    minutes_limit. Limits are only checked at creation time.
    """

    code = "LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str = "Plan limit reached",
        limit: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if limit:
            ctx["limit"] = limit
        super().__init__(message=message, context=ctx)
        self.limit = limit


class RateLimitExceededError(TooManyRequestsError):
    code = "RATE_LIMITED"

    def __init__(self, retry_after: int = 60, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Too many requests. Please wait {retry_after} seconds before retrying.",
            retry_after=retry_after,
            context=context,
        )


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An internal error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class WebhookProcessingError(InternalError):
    """
    A verified webhook event failed while being applied.

    The failure is already recorded on the webhook_events row when this is
    raised; the 500 response makes Stripe redeliver the event.
    """

    code = "WEBHOOK_PROCESSING_FAILED"

    def __init__(self, event_id: str, reason: str):
        super().__init__(
            message="Webhook processing failed",
            context={"event_id": event_id, "reason": reason},
        )
        self.event_id = event_id


class FileStorageError(InternalError):
    """
    Raised when the storage provider cannot read, write or delete an object.

    The client sees a generic message; the provider error and key go to the
    logs through `context`.
    """

    code = "STORAGE_ERROR"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExternalServiceError(AppError):
    """
    The billing processor (or another upstream API) failed after retries.

    Reported as 500 to the client; the upstream message goes to the logs.
    """

    status_code = 500
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        service: str,
        message: str = "An upstream service is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.service = service
