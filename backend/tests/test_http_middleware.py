"""
School Admin Backend — HTTP Middleware Tests
=============================================

What we test:
    ✅ Request ids: client ids kept when well-formed, replaced otherwise
    ✅ Access log: dispatch target fields and status-based levels
    ✅ Rate limiting only touches /api paths
"""

import logging

import pytest
from httpx import ASGITransport, AsyncClient

from school_admin.config import Settings
from school_admin.middleware.logging import dispatch_target, level_for
from school_admin.middleware.request_id import accept_request_id


class TestRequestId:
    def test_well_formed_kept(self):
        assert accept_request_id("trace-42_a") == "trace-42_a"

    @pytest.mark.parametrize("supplied", ["", "has space", "x" * 65, "line\nbreak"])
    def test_replaced(self, supplied):
        rid = accept_request_id(supplied)
        assert rid != supplied
        assert len(rid) == 8

    @pytest.mark.asyncio
    async def test_malformed_header_replaced(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "bad id!"})
        assert response.headers["X-Request-ID"] != "bad id!"


class TestAccessLog:
    def test_dispatch_target(self):
        assert dispatch_target("/api/school/get_school") == {"api_module": "school", "api_fn": "get_school"}
        assert dispatch_target("/health") is None
        assert dispatch_target("/api/school") is None

    def test_levels(self):
        assert level_for(200) == logging.INFO
        assert level_for(403) == logging.WARNING
        assert level_for(503) == logging.ERROR

    @pytest.mark.asyncio
    async def test_api_call_logged_with_target(self, test_client, caplog):
        with caplog.at_level(logging.INFO, logger="school_admin.access"):
            await test_client.get("/api/school/list_schools")

        records = [r for r in caplog.records if r.name == "school_admin.access"]
        assert records
        assert records[-1].api_module == "school"
        assert records[-1].api_fn == "list_schools"
        assert records[-1].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_health_not_logged(self, test_client, caplog):
        with caplog.at_level(logging.INFO, logger="school_admin.access"):
            await test_client.get("/health")
        assert not [r for r in caplog.records if r.name == "school_admin.access"]


class TestRateLimitScope:
    @pytest.mark.asyncio
    async def test_health_not_limited(self, engine):
        from school_admin.main import create_app

        app = create_app(Settings(rate_limit_requests=1), engine)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            statuses = [(await client.get("/health")).status_code for _ in range(3)]
            first = await client.get("/api/school/list_schools")
            second = await client.get("/api/school/list_schools")

        assert statuses == [200, 200, 200]
        assert first.status_code == 401
        assert second.status_code == 429
