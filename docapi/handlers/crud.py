"""
docapi — CRUD Handler Factory
===============================

What:  Builds request handlers for any `EntityModel`: fetch one, fetch many,
       create, update, delete.
How:   Each factory returns an `async def handler(request)` wrapped by
       `catch_async`, ready for `APIRouter.add_api_route`.

    router.add_api_route("/{id}", get_document(products), methods=["GET"])

Responses:
    fetch-one   200  {"status": "success", "data": {"document": {...}}}
    fetch-many  200  {"status": "success", "results": N, "data": [...]}
    create      201  {"status": "success", "data": {"document": {...}}}
    update      200  {"status": "success", "data": {"document": {...} | null}}
    delete      204  empty body, X-Deleted-Count header

Images:
    Collections configured with a `stored_folder` accept an `image` file in
    a multipart body. The document's `img_url` is set before the write; the
    resize/store runs in the background only after the write succeeded.
"""

import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from docapi.config import settings
from docapi.exceptions import NotFoundError
from docapi.handlers.catch_async import Handler, catch_async
from docapi.handlers.context import RequestContext, UploadedFile
from docapi.handlers.responses import send_success
from docapi.services.collection import EntityModel
from docapi.services.image_service import image_service
from docapi.services.query_filter import QueryFilter

logger = logging.getLogger(__name__)


def _attach_image(
    ctx: RequestContext,
    body: dict,
    stored_folder: Optional[str],
) -> Optional[str]:
    """
    Validate the uploaded image and point `img_url` at where it will live.

    Returns the relative storage path, or None when there is nothing to store.
    """
    image = ctx.file("image")
    if not stored_folder or image is None:
        return None
    image_service.validate(image.buffer, image.filename)
    image_path = image_service.plan(stored_folder)
    body["img_url"] = ctx.absolute_url(image_path)
    return image_path


def _schedule_image(image: Optional[UploadedFile], image_path: Optional[str]) -> None:
    if image is not None and image_path:
        image_service.schedule(image.buffer, image_path, settings.image_width)


def get_document(model: EntityModel) -> Handler:
    @catch_async
    async def handler(request: Request) -> Response:
        ctx = await RequestContext.from_request(request)
        doc_id = ctx.params["id"]

        document = await model.find_by_id(doc_id)
        if document is None:
            raise NotFoundError(resource=model.name, resource_id=doc_id)

        return send_success(200, {"document": document})

    return handler


def get_all_documents(model: EntityModel) -> Handler:
    @catch_async
    async def handler(request: Request) -> Response:
        ctx = await RequestContext.from_request(request)

        features = QueryFilter(model.find(), ctx.query).filter().sort().project().paginate()
        documents = await features.query

        return send_success(200, documents, results=len(documents))

    return handler


def create_document(model: EntityModel, stored_folder: Optional[str] = None) -> Handler:
    @catch_async
    async def handler(request: Request) -> Response:
        ctx = await RequestContext.from_request(request)
        body = dict(ctx.body)
        image_path = _attach_image(ctx, body, stored_folder)

        document = await model.create(body)

        if document:
            _schedule_image(ctx.file("image"), image_path)
        return send_success(201, {"document": document})

    return handler


def update_document(model: EntityModel, stored_folder: Optional[str] = None) -> Handler:
    @catch_async
    async def handler(request: Request) -> Response:
        ctx = await RequestContext.from_request(request)
        doc_id = ctx.params["id"]
        body = dict(ctx.body)
        image_path = _attach_image(ctx, body, stored_folder)

        document = await model.find_by_id_and_update(
            doc_id,
            body,
            new=True,
            run_validators=True,
        )

        if document:
            _schedule_image(ctx.file("image"), image_path)
        else:
            logger.info("Update matched no %s with id %s", model.name, doc_id)
        return send_success(200, {"document": document})

    return handler


def delete_document(model: EntityModel) -> Handler:
    @catch_async
    async def handler(request: Request) -> Response:
        ctx = await RequestContext.from_request(request)
        raw_ids = ctx.params["id"]
        ids = [part.strip() for part in raw_ids.split(",") if part.strip()]

        summary = await model.delete_many(ids)
        if summary.deleted_count == 0:
            raise NotFoundError(resource=model.name, resource_id=raw_ids)
        if summary.missing_ids:
            logger.info(
                "Bulk delete of %s skipped unknown ids: %s",
                model.name, ", ".join(summary.missing_ids),
            )

        return Response(
            status_code=204,
            headers={"X-Deleted-Count": str(summary.deleted_count)},
        )

    return handler
