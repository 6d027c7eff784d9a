"""
docapi — User Routes
======================

What:  Current-user account endpoints plus admin management of users.
How:   `/me` and `/update-me` are registered before `/{id}` so they are not
       captured as ids. Users are created by the authentication layer, so
       there is no create endpoint here.

Endpoints:
    GET    /api/v1/users/me           current user's account
    PATCH  /api/v1/users/update-me    update first_name, last_name, phone_number
    GET    /api/v1/users              list users
    GET    /api/v1/users/{id}         fetch one
    PATCH  /api/v1/users/{id}         update
    DELETE /api/v1/users/{id}         delete; `{id}` may be "a,b,c"
"""

from fastapi import APIRouter

from docapi.handlers.account import get_my_account, update_my_account
from docapi.handlers.crud import (
    delete_document,
    get_all_documents,
    get_document,
    update_document,
)
from docapi.models import User
from docapi.services.collection import Collection

users = Collection(User)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

# ── Current user ─────────────────────────────────────────────────────────
router.add_api_route(
    "/me",
    get_my_account(users),
    methods=["GET"],
    summary="Get my account",
)
router.add_api_route(
    "/update-me",
    update_my_account(users),
    methods=["PATCH"],
    summary="Update my account",
)

# ── Admin ────────────────────────────────────────────────────────────────
router.add_api_route(
    "",
    get_all_documents(users),
    methods=["GET"],
    summary="List users",
)
router.add_api_route(
    "/{id}",
    get_document(users),
    methods=["GET"],
    summary="Get a user by id",
)
router.add_api_route(
    "/{id}",
    update_document(users),
    methods=["PATCH"],
    summary="Update a user",
)
router.add_api_route(
    "/{id}",
    delete_document(users),
    methods=["DELETE"],
    status_code=204,
    summary="Delete one or more users",
)
