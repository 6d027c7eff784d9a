"""
docapi — Request Context
==========================

What:  A per-request snapshot of everything a handler reads: path params,
       query-string mapping, body payload, uploaded files, protocol, host and
       the authenticated user id.
How:   `await RequestContext.from_request(request)` parses JSON bodies and
       multipart/urlencoded forms into `body` and `files`.

The user id is read from `request.state.user_id`; populating it is the job
of the authentication layer in front of these routes.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from starlette.datastructures import UploadFile
from starlette.requests import Request

from docapi.exceptions import BadRequestError

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
BODYLESS_METHODS = ("GET", "HEAD", "DELETE", "OPTIONS")


@dataclass
class UploadedFile:
    filename: str
    content_type: Optional[str]
    buffer: bytes


@dataclass
class RequestContext:
    params: Dict[str, str]
    query: Dict[str, str]
    body: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, List[UploadedFile]] = field(default_factory=dict)
    protocol: str = "http"
    host: str = "localhost"
    user_id: Optional[str] = None

    @classmethod
    async def from_request(cls, request: Request) -> "RequestContext":
        body, files = await _read_payload(request)
        return cls(
            params=dict(request.path_params),
            query=dict(request.query_params),
            body=body,
            files=files,
            protocol=request.url.scheme,
            host=request.headers.get("host") or request.url.netloc,
            user_id=getattr(request.state, "user_id", None),
        )

    def file(self, name: str) -> Optional[UploadedFile]:
        """First uploaded file under form field `name`, if any."""
        uploads = self.files.get(name)
        return uploads[0] if uploads else None

    def absolute_url(self, relative_path: str) -> str:
        return f"{self.protocol}://{self.host}/{relative_path.lstrip('/')}"


async def _read_payload(
    request: Request,
) -> Tuple[Dict[str, Any], Dict[str, List[UploadedFile]]]:
    if request.method in BODYLESS_METHODS:
        return {}, {}

    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        body: Dict[str, Any] = {}
        files: Dict[str, List[UploadedFile]] = {}
        async with request.form() as form:
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    files.setdefault(key, []).append(
                        UploadedFile(
                            filename=value.filename or key,
                            content_type=value.content_type,
                            buffer=await value.read(),
                        )
                    )
                else:
                    body[key] = value
        return body, files

    raw = await request.body()
    if not raw.strip():
        return {}, {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise BadRequestError(message="Request body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise BadRequestError(message="Request body must be a JSON object")
    return payload, {}
