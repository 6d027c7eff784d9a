"""
docapi — Operational Error Hierarchy
======================================

What:  Application-level errors carrying an HTTP status code and a
       user-facing message.
How:   Handlers and the data layer raise these; the centralized handler in
       `docapi.error_handlers` turns them into the JSON error envelope.
       Raising is how a handler signals failure AND stops processing.

Exception Hierarchy:
    OperationalError (base, 500 unless told otherwise)
    ├── BadRequestError     → 400 Bad Request (client can fix)
    ├── UnauthorizedError   → 401 Unauthorized
    ├── NotFoundError       → 404 Not Found
    ├── FileStorageError    → 500 Internal Server Error
    └── DatabaseError       → 500 Internal Server Error

Envelope status:
    4xx → "fail"   (the request was wrong)
    5xx → "error"  (we were wrong)
"""

from typing import Any, Dict, Optional


class OperationalError(Exception):
    """
    Base exception for all docapi application errors.

    Attributes:
        message:      User-facing error description (safe to return in API response)
        status_code:  HTTP status the centralized handler responds with
        error_code:   Machine-readable code placed in the envelope
        context:      Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context or {}
        super().__init__(self.message)

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class BadRequestError(OperationalError):
    """
    Raised when client input cannot be used as sent.

    When:  Password change through the account route, unknown filter field,
           value that does not fit the column type, duplicate unique value,
           unsupported image upload.
    """

    status_code = 400
    error_code = "bad_request"

    def __init__(
        self,
        message: str = "Invalid request",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(OperationalError):
    """Raised when a current-user route runs without an authenticated user id."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "You are not logged in. Please log in to get access.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(OperationalError):
    """
    Raised when a requested document does not exist.

    The data layer returns None for missing records; handlers convert that
    into this exception, which stops the handler and yields a 404.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "document",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"No {resource} found with that ID"
        if resource_id:
            message = f"No {resource} found with ID '{resource_id}'"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(OperationalError):
    """
    Raised when an image cannot be sniffed, decoded or written to disk.

    Decode and write failures happen inside the background image task, so
    they reach the task failure log rather than a client.
    """

    error_code = "file_storage_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(OperationalError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the underlying
    driver error is kept in `context` for the server log.
    """

    error_code = "database_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
