"""
School Admin Backend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment is overridden before any school_admin import so the
       module-level settings never point at a real database. Stores and apps
       run against a fresh in-memory SQLite database per test (aiosqlite).

Fixture Hierarchy:
    test_settings ── engine ──┬── store
                              └── app ── test_client ── superadmin_token
    mock_store:   AsyncMock store for manager unit tests
    make_ctx:     builds RequestContext objects without HTTP
"""

import os

# Override settings for testing BEFORE any application imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LONG_TOKEN_SECRET"] = "test-secret-for-long-tokens-0123456789abcdef"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SUPERADMIN_USERNAME"] = "root_admin"
os.environ["SUPERADMIN_PASSWORD"] = "root-password-123"
os.environ["SUPERADMIN_EMAIL"] = "root@school.test"

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from school_admin.config import Settings
from school_admin.database import build_engine, build_session_factory, dispose_engine, init_models
from school_admin.dispatch.context import RequestContext
from school_admin.services.store import DocumentStore

SUPERADMIN = {"username": "root_admin", "password": "root-password-123"}


# ══════════════════════════════════════════════════════════════════════════
# Settings & Database
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings() -> Settings:
    """Settings read from the overridden environment above."""
    return Settings()


@pytest_asyncio.fixture
async def engine(test_settings):
    """A fresh in-memory database with the blocks table created."""
    engine = build_engine(test_settings)
    await init_models(engine)
    yield engine
    await dispose_engine(engine)


@pytest_asyncio.fixture
async def store(engine) -> DocumentStore:
    return DocumentStore(build_session_factory(engine))


@pytest.fixture
def mock_store():
    """
    AsyncMock standing in for DocumentStore.

    Usage:
        mock_store.get_block.return_value = {"_id": "s1", "name": "North High"}
    """
    store = AsyncMock(spec=DocumentStore)
    store.get_block.return_value = None
    store.search_find.return_value = {"items": [], "total": 0}
    store.update_block.return_value = None
    store.delete_block.return_value = True

    async def add_block(block):
        data = {k: v for k, v in block.items() if k not in ("_label", "_hosts", "_id")}
        return {"_id": block.get("_id") or "generated-id", **data}

    store.add_block.side_effect = add_block
    return store


# ══════════════════════════════════════════════════════════════════════════
# Application & HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def app(test_settings, engine):
    """
    Fully wired application on the test engine, superadmin seeded.

    ASGITransport does not run the lifespan, so the seed runs here.
    """
    from school_admin.main import create_app

    application = create_app(test_settings, engine)
    await application.state.managers["user"].seed_super_admin(test_settings)
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient routed straight into the app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def superadmin_token(test_client) -> str:
    response = await test_client.post("/api/user/login", json=SUPERADMIN)
    assert response.status_code == 200, response.text
    return response.json()["data"]["token"]


@pytest.fixture
def make_ctx():
    """Factory for RequestContext objects, no HTTP involved."""

    def _make(method="get", module_name="mod", fn_name="fn", query=None, body=None, headers=None):
        return RequestContext(
            method=method,
            module_name=module_name,
            fn_name=fn_name,
            query=dict(query or {}),
            body=dict(body or {}),
            headers=dict(headers or {}),
            request_id="test1234",
        )

    return _make
