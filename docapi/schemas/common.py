"""
docapi — Pydantic Response Schemas
====================================

What:  Response models for the OpenAPI docs of routes whose body shape is
       fixed. Document bodies are plain dicts from the collection layer and
       are not modelled here.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    What:  Body of every error response.
    Who:   Produced by `docapi.error_handlers.handle_error`.
    """
    status: str = Field(description='"fail" for 4xx, "error" for 5xx')
    error: str = Field(description="Machine-readable error code, e.g. not_found")
    message: str = Field(description="Human-readable explanation")
    request_id: Optional[str] = Field(
        default=None,
        description="Correlation id, also sent as the X-Request-ID header",
    )


class HealthResponse(BaseModel):
    """
    What:  Service health summary.
    Who:   Returned by GET /health for probes and load balancers.
    """
    status: str = Field(description="healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="connected or disconnected")
    pending_image_tasks: int = Field(
        ge=0, description="Background image resize/store tasks still running"
    )
    uptime_seconds: float = Field(description="Seconds since the process started")
