"""
docapi — Product Routes
=========================

What:  Full CRUD over the product collection.
How:   Every endpoint is a handler produced by the CRUD factory; uploaded
       product images are stored under public/images/products/.

Endpoints:
    GET    /api/v1/products           list (filter, sort, fields, page, limit)
    POST   /api/v1/products           create (JSON or multipart with `image`)
    GET    /api/v1/products/{id}      fetch one
    PATCH  /api/v1/products/{id}      update (JSON or multipart with `image`)
    DELETE /api/v1/products/{id}      delete; `{id}` may be "a,b,c"
"""

from fastapi import APIRouter

from docapi.handlers.crud import (
    create_document,
    delete_document,
    get_all_documents,
    get_document,
    update_document,
)
from docapi.models import Product
from docapi.services.collection import Collection

IMAGE_FOLDER = "products"

products = Collection(Product)

router = APIRouter(prefix="/api/v1/products", tags=["Products"])

router.add_api_route(
    "",
    get_all_documents(products),
    methods=["GET"],
    summary="List products",
)
router.add_api_route(
    "",
    create_document(products, stored_folder=IMAGE_FOLDER),
    methods=["POST"],
    status_code=201,
    summary="Create a product",
)
router.add_api_route(
    "/{id}",
    get_document(products),
    methods=["GET"],
    summary="Get a product by id",
)
router.add_api_route(
    "/{id}",
    update_document(products, stored_folder=IMAGE_FOLDER),
    methods=["PATCH"],
    summary="Update a product",
)
router.add_api_route(
    "/{id}",
    delete_document(products),
    methods=["DELETE"],
    status_code=204,
    summary="Delete one or more products",
)
