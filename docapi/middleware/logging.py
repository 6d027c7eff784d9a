"""
docapi — Request Logging Middleware
=====================================

What:  One access-log line per HTTP request with status and duration.
How:   Measures from middleware entry to response return and logs through the
       `docapi.access` logger, picking the level from the status code.
When:  Runs inside RequestIDMiddleware so the request id is already set.

Logged: method, path, status, duration, client IP, request id.
Not logged: request bodies, uploaded files, headers (may carry PII or tokens).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from docapi.middleware.request_id import request_id_var

logger = logging.getLogger("docapi.access")

# Probes and static assets would drown out API traffic
QUIET_PREFIXES = ("/health", "/public/")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs structured information about each HTTP request and response.

    Level by status:
        5xx     → ERROR
        4xx     → WARNING
        2xx/3xx → INFO
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PREFIXES):
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
