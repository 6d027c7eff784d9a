"""
docapi — Async Error Adapter
==============================

What:  Wraps an async request handler so that any exception it raises is
       turned into the centralized error response instead of escaping.
How:   The wrapper awaits the handler; on failure it returns
       `handle_error(request, exc)`, the same function the app registers as
       its exception handler.

    @catch_async
    async def handler(request: Request) -> Response:
        ...
        raise NotFoundError(...)   # stops here, client gets the 404 envelope
"""

import functools
from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response

from docapi.error_handlers import handle_error

Handler = Callable[[Request], Awaitable[Response]]


def catch_async(handler: Handler) -> Handler:
    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except Exception as exc:
            return await handle_error(request, exc)

    return wrapper
