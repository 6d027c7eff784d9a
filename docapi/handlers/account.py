"""
docapi — Current-User Account Handlers
========================================

What:  Read and update the account of the user making the request.
How:   The user id comes from `request.state.user_id` (set by the
       authentication layer). Updates are restricted to an allow-list so a
       body carrying `role` or other fields cannot escalate privileges, and
       password changes are refused outright on this path.

Fields never returned from these routes: version, role, password.
"""

from typing import Any, Dict, Mapping

from starlette.requests import Request
from starlette.responses import Response

from docapi.exceptions import BadRequestError, NotFoundError, UnauthorizedError
from docapi.handlers.catch_async import Handler, catch_async
from docapi.handlers.context import RequestContext
from docapi.handlers.responses import send_success
from docapi.services.collection import EntityModel

UPDATABLE_FIELDS = ("first_name", "last_name", "phone_number")
PASSWORD_FIELDS = ("password", "confirm_password")
ACCOUNT_PROJECTION = ("-version", "-role", "-password")


def filter_fields(source: Mapping[str, Any], *allowed: str) -> Dict[str, Any]:
    """New dict holding only the `allowed` keys of `source`."""
    return {key: value for key, value in source.items() if key in allowed}


def _current_user_id(ctx: RequestContext) -> str:
    if not ctx.user_id:
        raise UnauthorizedError()
    return str(ctx.user_id)


def update_my_account(model: EntityModel) -> Handler:
    @catch_async
    async def handler(request: Request) -> Response:
        ctx = await RequestContext.from_request(request)

        if any(key in ctx.body for key in PASSWORD_FIELDS):
            raise BadRequestError(
                message="This route is not for password updates. Please use /update-password.",
                field="password",
            )
        user_id = _current_user_id(ctx)

        fields_to_update = filter_fields(ctx.body, *UPDATABLE_FIELDS)
        user = await model.find_by_id_and_update(
            user_id,
            fields_to_update,
            new=True,
            run_validators=True,
            projection=ACCOUNT_PROJECTION,
        )
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)

        return send_success(200, {"user": user})

    return handler


def get_my_account(model: EntityModel) -> Handler:
    @catch_async
    async def handler(request: Request) -> Response:
        ctx = await RequestContext.from_request(request)
        user_id = _current_user_id(ctx)

        user = await model.find_by_id(user_id).select(*ACCOUNT_PROJECTION)
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)

        return send_success(200, {"user": user})

    return handler
