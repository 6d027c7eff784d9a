"""Success envelope shared by every handler."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def send_success(status_code: int, data: Any, **extra: Any) -> JSONResponse:
    """`{"status": "success", **extra, "data": data}` with datetimes etc. encoded."""
    content = {"status": "success", **extra, "data": data}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))
