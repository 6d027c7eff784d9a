"""
docapi — CRUD Handler Factory Tests
=====================================

What:  Tests for the handlers produced by docapi.handlers.crud.
How:   Unit tests mount single handlers on a throwaway FastAPI app backed by
       an AsyncMock entity model; API tests go through the real app and the
       SQLite test database.

What we test:
    ✅ Fetch-one 404 stops the handler (no success body)
    ✅ Delete "a,b,c" issues one delete_many and answers 204
    ✅ Image uploads: img_url format, resize scheduled only after a write
    ✅ Update of an unknown id answers 200 with a null document
    ✅ Unexpected errors become a generic 500
    ✅ Full product lifecycle over HTTP, including a real image upload
"""

import re
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image

from docapi.exceptions import BadRequestError
from docapi.handlers.crud import (
    create_document,
    delete_document,
    get_all_documents,
    get_document,
    update_document,
)
from docapi.services.collection import DeleteSummary
from docapi.services.image_service import image_service

IMG_URL_PATTERN = re.compile(r"^http://test/public/images/products/(\d{13}-[0-9a-f]{8})\.jpg$")


@pytest.fixture
def model():
    """An AsyncMock standing in for any EntityModel."""
    entity_model = MagicMock()
    entity_model.name = "item"
    entity_model.find_by_id = AsyncMock(return_value=None)
    entity_model.create = AsyncMock(side_effect=lambda values: {"id": "1", **values})
    entity_model.find_by_id_and_update = AsyncMock(return_value=None)
    entity_model.delete_many = AsyncMock()
    return entity_model


@pytest_asyncio.fixture
async def item_client(model):
    """Client for an app exposing the CRUD handlers over the mock model."""
    app = FastAPI()
    app.add_api_route("/items", create_document(model, stored_folder="products"), methods=["POST"])
    app.add_api_route("/items/{id}", get_document(model), methods=["GET"])
    app.add_api_route("/items/{id}", update_document(model, stored_folder="products"), methods=["PATCH"])
    app.add_api_route("/items/{id}", delete_document(model), methods=["DELETE"])
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestFetchOne:

    @pytest.mark.asyncio
    async def test_missing_document_is_404_only(self, item_client, model):
        """A missing document yields the error envelope and nothing else."""
        response = await item_client.get("/items/nope")

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "fail"
        assert body["error"] == "not_found"
        assert "nope" in body["message"]
        assert "data" not in body
        model.find_by_id.assert_called_once_with("nope")

    @pytest.mark.asyncio
    async def test_found_document(self, item_client, model):
        model.find_by_id = AsyncMock(return_value={"id": "7", "name": "Lamp"})

        response = await item_client.get("/items/7")

        assert response.status_code == 200
        assert response.json() == {"status": "success", "data": {"document": {"id": "7", "name": "Lamp"}}}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_500(self, item_client, model):
        model.find_by_id = AsyncMock(side_effect=RuntimeError("connection string leaked"))

        response = await item_client.get("/items/7")

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "error"
        assert body["error"] == "internal_server_error"
        assert "leaked" not in response.text


class TestDelete:

    @pytest.mark.asyncio
    async def test_comma_separated_ids_single_call(self, item_client, model):
        model.delete_many.return_value = DeleteSummary(requested=["a", "b", "c"], deleted_count=3)

        response = await item_client.delete("/items/a,b,c")

        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["X-Deleted-Count"] == "3"
        model.delete_many.assert_awaited_once_with(["a", "b", "c"])

    @pytest.mark.asyncio
    async def test_partial_delete_still_204(self, item_client, model):
        model.delete_many.return_value = DeleteSummary(
            requested=["a", "zz"], deleted_count=1, missing_ids=["zz"]
        )

        response = await item_client.delete("/items/a,zz")

        assert response.status_code == 204
        assert response.headers["X-Deleted-Count"] == "1"

    @pytest.mark.asyncio
    async def test_nothing_deleted_is_404(self, item_client, model):
        model.delete_many.return_value = DeleteSummary(
            requested=["x"], deleted_count=0, missing_ids=["x"]
        )

        response = await item_client.delete("/items/x")

        assert response.status_code == 404


class TestImageUploads:

    @pytest.mark.asyncio
    async def test_create_sets_img_url_and_schedules_resize(self, item_client, model, jpeg_bytes):
        with patch.object(image_service, "validate") as mock_validate, \
             patch.object(image_service, "schedule") as mock_schedule:
            response = await item_client.post(
                "/items",
                data={"name": "Lamp", "price": "10"},
                files={"image": ("lamp.jpg", jpeg_bytes, "image/jpeg")},
            )

        assert response.status_code == 201
        document = response.json()["data"]["document"]
        match = IMG_URL_PATTERN.match(document["img_url"])
        assert match, document["img_url"]

        mock_validate.assert_called_once_with(jpeg_bytes, "lamp.jpg")
        mock_schedule.assert_called_once_with(
            jpeg_bytes, f"public/images/products/{match.group(1)}.jpg", 500
        )
        written = model.create.await_args.args[0]
        assert written["img_url"] == document["img_url"]
        assert written["name"] == "Lamp"

    @pytest.mark.asyncio
    async def test_no_resize_when_create_fails(self, item_client, model, jpeg_bytes):
        model.create = AsyncMock(side_effect=BadRequestError(message="A product must have a name"))

        with patch.object(image_service, "validate"), \
             patch.object(image_service, "schedule") as mock_schedule:
            response = await item_client.post(
                "/items",
                files={"image": ("lamp.jpg", jpeg_bytes, "image/jpeg")},
            )

        assert response.status_code == 400
        mock_schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_image_never_reaches_the_model(self, item_client, model):
        with patch.object(
            image_service,
            "validate",
            side_effect=BadRequestError(message="not an image", field="image"),
        ):
            response = await item_client.post(
                "/items",
                data={"name": "Lamp"},
                files={"image": ("notes.txt", b"hello", "text/plain")},
            )

        assert response.status_code == 400
        model.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_without_image_schedules_nothing(self, item_client, model):
        with patch.object(image_service, "schedule") as mock_schedule:
            response = await item_client.post("/items", json={"name": "Lamp", "price": 3})

        assert response.status_code == 201
        assert "img_url" not in response.json()["data"]["document"]
        mock_schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_unknown_id_is_null_document(self, item_client, model, jpeg_bytes):
        with patch.object(image_service, "validate"), \
             patch.object(image_service, "schedule") as mock_schedule:
            response = await item_client.patch(
                "/items/ghost",
                files={"image": ("lamp.jpg", jpeg_bytes, "image/jpeg")},
            )

        assert response.status_code == 200
        assert response.json() == {"status": "success", "data": {"document": None}}
        mock_schedule.assert_not_called()
        args, kwargs = model.find_by_id_and_update.await_args
        assert args[0] == "ghost"
        assert kwargs == {"new": True, "run_validators": True}

    @pytest.mark.asyncio
    async def test_update_schedules_resize_after_write(self, item_client, model, jpeg_bytes):
        model.find_by_id_and_update = AsyncMock(
            side_effect=lambda doc_id, values, **kwargs: {"id": doc_id, **values}
        )

        with patch.object(image_service, "validate"), \
             patch.object(image_service, "schedule") as mock_schedule:
            response = await item_client.patch(
                "/items/7",
                data={"price": "4"},
                files={"image": ("lamp.jpg", jpeg_bytes, "image/jpeg")},
            )

        assert response.status_code == 200
        document = response.json()["data"]["document"]
        assert IMG_URL_PATTERN.match(document["img_url"])
        mock_schedule.assert_called_once()


class FakeQuery:
    """Records the stages applied to it and resolves to fixed documents."""

    def __init__(self, documents):
        self.documents = documents
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        return self

    def filter(self, predicate):
        return self._record("filter", predicate)

    def sort(self, fields):
        return self._record("sort", fields)

    def select(self, *fields):
        return self._record("select", *fields)

    def skip(self, count):
        return self._record("skip", count)

    def limit(self, count):
        return self._record("limit", count)

    async def _execute(self):
        return self.documents

    def __await__(self):
        return self._execute().__await__()


class TestGetAll:

    @pytest.mark.asyncio
    async def test_list_envelope(self, model):
        query = FakeQuery([{"id": "1"}, {"id": "2"}])
        model.find = MagicMock(return_value=query)

        app = FastAPI()
        app.add_api_route("/items", get_all_documents(model), methods=["GET"])
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/items", params={"price[gt]": "3", "page": "2", "limit": "5"})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "results": 2, "data": [{"id": "1"}, {"id": "2"}]}
        assert query.calls == [
            ("filter", {"price": {"$gt": "3"}}),
            ("sort", ["-created_at"]),
            ("select", "-version"),
            ("skip", 5),
            ("limit", 5),
        ]

    @pytest.mark.asyncio
    async def test_empty_result_is_success(self, model):
        model.find = MagicMock(return_value=FakeQuery([]))

        app = FastAPI()
        app.add_api_route("/items", get_all_documents(model), methods=["GET"])
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/items")

        assert response.status_code == 200
        assert response.json() == {"status": "success", "results": 0, "data": []}


class TestProductsApi:
    """The /api/v1/products routes end-to-end."""

    @pytest.mark.asyncio
    async def test_product_lifecycle(self, test_client):
        created = await test_client.post("/api/v1/products", json={"name": "Lamp", "price": 20})
        assert created.status_code == 201
        product_id = created.json()["data"]["document"]["id"]

        fetched = await test_client.get(f"/api/v1/products/{product_id}")
        assert fetched.status_code == 200
        assert fetched.json()["data"]["document"]["name"] == "Lamp"

        updated = await test_client.patch(f"/api/v1/products/{product_id}", json={"price": 25})
        assert updated.status_code == 200
        assert updated.json()["data"]["document"]["price"] == 25.0

        deleted = await test_client.delete(f"/api/v1/products/{product_id}")
        assert deleted.status_code == 204

        gone = await test_client.get(f"/api/v1/products/{product_id}")
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_oversized_page_falls_back_to_first_page(self, test_client):
        await test_client.post("/api/v1/products", json={"name": "Lamp", "price": 20})

        response = await test_client.get(
            "/api/v1/products", params={"page": "99999999999999999999", "limit": "10"}
        )

        assert response.status_code == 200
        assert response.json()["results"] == 1

    @pytest.mark.asyncio
    async def test_page_window_out_of_range_is_400(self, test_client):
        response = await test_client.get(
            "/api/v1/products", params={"page": str(2**62), "limit": "10"}
        )

        assert response.status_code == 400
        assert response.json()["status"] == "fail"

    @pytest.mark.asyncio
    async def test_listing_with_query_string(self, test_client):
        for name, price in (("a", 5), ("b", 15), ("c", 25)):
            await test_client.post("/api/v1/products", json={"name": name, "price": price})

        response = await test_client.get(
            "/api/v1/products",
            params={"price[gte]": "10", "sort": "-price", "fields": "name"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["results"] == 2
        assert [doc["name"] for doc in body["data"]] == ["c", "b"]

    @pytest.mark.asyncio
    async def test_unknown_filter_field_is_400(self, test_client):
        response = await test_client.get("/api/v1/products", params={"colour": "red"})

        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"

    @pytest.mark.asyncio
    async def test_invalid_json_body_is_400(self, test_client):
        response = await test_client.post(
            "/api/v1/products",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bulk_delete(self, test_client):
        ids = []
        for name in ("a", "b", "c"):
            created = await test_client.post("/api/v1/products", json={"name": name, "price": 1})
            ids.append(created.json()["data"]["document"]["id"])

        response = await test_client.delete(f"/api/v1/products/{ids[0]},{ids[1]}")

        assert response.status_code == 204
        assert response.headers["X-Deleted-Count"] == "2"
        remaining = (await test_client.get("/api/v1/products")).json()
        assert [doc["id"] for doc in remaining["data"]] == [ids[2]]

    @pytest.mark.asyncio
    async def test_image_upload_is_resized_and_stored(self, test_client, jpeg_bytes, static_root):
        response = await test_client.post(
            "/api/v1/products",
            data={"name": "Lamp", "price": "10"},
            files={"image": ("lamp.jpg", jpeg_bytes, "image/jpeg")},
        )
        assert response.status_code == 201
        img_url = response.json()["data"]["document"]["img_url"]
        assert IMG_URL_PATTERN.match(img_url)

        await image_service.drain()

        stored = Path(static_root) / img_url.replace("http://test/", "")
        assert stored.exists()
        with Image.open(stored) as image:
            assert image.size == (500, 250)
