"""
docapi — Request Handlers
===========================

Handler inventory:
    - crud.py:        get_document, get_all_documents, create_document,
                      update_document, delete_document (factories over any
                      EntityModel)
    - account.py:     get_my_account, update_my_account, filter_fields
    - catch_async.py: async error adapter wrapping every handler
    - context.py:     RequestContext built from the incoming request
"""

from docapi.handlers.account import filter_fields, get_my_account, update_my_account
from docapi.handlers.catch_async import catch_async
from docapi.handlers.crud import (
    create_document,
    delete_document,
    get_all_documents,
    get_document,
    update_document,
)

__all__ = [
    "catch_async",
    "create_document",
    "delete_document",
    "filter_fields",
    "get_all_documents",
    "get_document",
    "get_my_account",
    "update_document",
    "update_my_account",
]
