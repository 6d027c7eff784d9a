"""
docapi — Test Configuration (conftest.py)
===========================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── database: SQLite schema created from Base.metadata, dropped afterwards
    ├── products / users: Collections bound to the test database
    ├── jpeg_bytes: A real 800x400 JPEG generated with Pillow
    └── test_client: HTTPX AsyncClient for API endpoint testing

Authentication:
    The API reads the current user from `request.state.user_id`. The test
    client installs a tiny middleware that copies the `X-Test-User` header
    there, standing in for the real authentication layer.
"""

import io
import os
import tempfile

# Override settings for testing BEFORE any docapi imports
_test_root = tempfile.mkdtemp(prefix="docapi_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_root}/test.db"
os.environ["STATIC_ROOT"] = _test_root
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from starlette.middleware.base import BaseHTTPMiddleware

from docapi.database import Base, engine
from docapi.models import Product, User
from docapi.services.collection import Collection
from docapi.services.image_service import image_service

TEST_USER_HEADER = "X-Test-User"


@pytest_asyncio.fixture
async def database():
    """
    Fresh schema for one test.

    Yields the engine; tables are dropped and pooled connections closed
    afterwards so the next test (and its event loop) starts clean.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await image_service.drain()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def products(database) -> Collection:
    return Collection(Product)


@pytest.fixture
def users(database) -> Collection:
    return Collection(User)


@pytest.fixture
def static_root() -> str:
    return _test_root


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A real JPEG wider than the configured resize width."""
    buffer = io.BytesIO()
    Image.new("RGB", (800, 400), color=(200, 30, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


async def _set_test_user(request, call_next):
    user_id = request.headers.get(TEST_USER_HEADER)
    if user_id:
        request.state.user_id = user_id
    return await call_next(request)


@pytest_asyncio.fixture
async def test_client(database):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from docapi.main import create_app

    app = create_app()
    app.add_middleware(BaseHTTPMiddleware, dispatch=_set_test_user)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
