"""
docapi — Centralized Error Handling
=====================================

What:  The single place where failures become HTTP responses.
How:   `handle_error` maps an exception to the JSON error envelope. It is
       registered as the app-level exception handler AND called directly by
       the async error adapter (`docapi.handlers.catch_async`), so both paths
       produce identical responses.

Envelope:
    {
        "status": "fail",            # "error" for 5xx
        "error": "not_found",
        "message": "No product found with ID 'abc'",
        "request_id": "a1b2c3d4"
    }

Security: unexpected exceptions never leak their text or traceback to the
client; those are logged server-side with exc_info.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docapi.exceptions import OperationalError
from docapi.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


async def handle_error(request: Request, exc: Exception) -> JSONResponse:
    """Build the error response for `exc` and log it at a matching level."""
    rid = request_id_var.get("")

    if isinstance(exc, OperationalError):
        if exc.status_code >= 500:
            logger.error(
                "[%s] %s %s failed: %s | Context: %s",
                rid, request.method, request.url.path, exc.message, exc.context,
            )
        else:
            logger.warning(
                "[%s] %s %s rejected (%d): %s",
                rid, request.method, request.url.path, exc.status_code, exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": exc.status,
                "error": exc.error_code,
                "message": exc.message,
                "request_id": rid,
            },
        )

    if isinstance(exc, StarletteHTTPException):
        # Raised by the framework itself, e.g. a malformed multipart body
        logger.warning(
            "[%s] %s %s rejected (%d): %s",
            rid, request.method, request.url.path, exc.status_code, exc.detail,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "fail" if exc.status_code < 500 else "error",
                "error": "http_error",
                "message": str(exc.detail),
                "request_id": rid,
            },
            headers=getattr(exc, "headers", None),
        )

    logger.error(
        "[%s] Unexpected error on %s %s: %s",
        rid,
        request.method,
        request.url.path,
        str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "error": "internal_server_error",
            "message": "Something went wrong. Please try again or contact support.",
            "request_id": rid,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register `handle_error` for operational and unexpected exceptions.

    Handlers produced by the CRUD factory never let exceptions escape (the
    async error adapter catches them), so these registrations cover plain
    routes such as /health and failures raised by dependencies.
    """
    app.add_exception_handler(OperationalError, handle_error)
    app.add_exception_handler(Exception, handle_error)
