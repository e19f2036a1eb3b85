"""
School Admin Backend — End-to-End API Tests
=============================================

What:  Full request path through create_app(): HTTP middlewares, route
       resolution, dispatch middlewares, managers and the SQLite store.

What we test:
    ✅ /health envelope
    ✅ Login → token → guarded calls (401 / 403 / 200)
    ✅ School admin tenant isolation over HTTP
    ✅ Envelope for unknown paths and resolution failures
    ✅ Request id header and login rate limiting
    ✅ Form-encoded numbers are stored as numbers
"""

import pytest

from school_admin.config import Settings


async def create_school(client, token, name="North High"):
    response = await client.post(
        "/api/school/create_school",
        json={"name": name, "address": "1 Main Street", "email": "office@north.edu"},
        headers={"token": token},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]["school"]


async def school_admin_token(client, super_token, school_id, username="north_admin"):
    response = await client.post(
        "/api/user/create_user",
        json={
            "username": username,
            "password": "admin-pass-123",
            "email": f"{username}@north.edu",
            "role": "schooladmin",
            "school_id": school_id,
        },
        headers={"token": super_token},
    )
    assert response.status_code == 200, response.text
    login = await client.post(
        "/api/user/login", json={"username": username, "password": "admin-pass-123"}
    )
    return login.json()["data"]["token"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["data"]["database"] == "connected"
        assert body["data"]["service"] == "school-admin"
        assert "X-Request-ID" in response.headers


class TestAuthFlow:
    @pytest.mark.asyncio
    async def test_login_returns_token_without_password(self, test_client):
        response = await test_client.post(
            "/api/user/login", json={"username": "root_admin", "password": "root-password-123"}
        )
        data = response.json()["data"]
        assert data["token"]
        assert data["user"]["role"] == "superadmin"
        assert "password" not in data["user"]

    @pytest.mark.asyncio
    async def test_bad_credentials_is_400(self, test_client):
        response = await test_client.post(
            "/api/user/login", json={"username": "root_admin", "password": "wrong-password"}
        )
        assert response.status_code == 400
        assert response.json() == {"ok": False, "errors": "invalid credentials"}

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, test_client):
        response = await test_client.get("/api/school/list_schools")
        assert response.status_code == 401
        assert response.json() == {"ok": False, "errors": "unauthorized"}

    @pytest.mark.asyncio
    async def test_profile(self, test_client, superadmin_token):
        response = await test_client.get(
            "/api/user/get_profile", headers={"Authorization": f"Bearer {superadmin_token}"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["username"] == "root_admin"

    @pytest.mark.asyncio
    async def test_spoofed_token_field_ignored(self, test_client):
        response = await test_client.get(
            "/api/user/get_profile",
            params={"__long_token": "x"},
        )
        assert response.status_code == 401


class TestSchoolsOverHttp:
    @pytest.mark.asyncio
    async def test_superadmin_creates_and_lists(self, test_client, superadmin_token):
        school = await create_school(test_client, superadmin_token)

        response = await test_client.get(
            "/api/school/list_schools", headers={"token": superadmin_token}
        )
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["schools"][0]["_id"] == school["_id"]
        assert data["page"] == 1
        assert data["limit"] == 20

    @pytest.mark.asyncio
    async def test_validation_errors_are_400(self, test_client, superadmin_token):
        response = await test_client.post(
            "/api/school/create_school",
            json={"name": "N", "address": "1 Main Street", "email": "not-an-email"},
            headers={"token": superadmin_token},
        )
        assert response.status_code == 400
        assert isinstance(response.json()["errors"], list)

    @pytest.mark.asyncio
    async def test_school_admin_cannot_create_school(self, test_client, superadmin_token):
        school = await create_school(test_client, superadmin_token)
        admin_token = await school_admin_token(test_client, superadmin_token, school["_id"])

        response = await test_client.post(
            "/api/school/create_school",
            json={"name": "South", "address": "2 Side Street", "email": "s@south.edu"},
            headers={"token": admin_token},
        )
        assert response.status_code == 403
        assert response.json() == {"ok": False, "errors": "forbidden: superadmin access required"}


class TestTenantIsolation:
    @pytest.mark.asyncio
    async def test_school_admin_scoped_to_own_school(self, test_client, superadmin_token):
        north = await create_school(test_client, superadmin_token, "North High")
        south = await create_school(test_client, superadmin_token, "South High")
        admin_token = await school_admin_token(test_client, superadmin_token, north["_id"])
        headers = {"token": admin_token}

        own = await test_client.post(
            "/api/classroom/create_classroom",
            json={"name": "1A", "school_id": north["_id"], "capacity": 1},
            headers=headers,
        )
        assert own.status_code == 200
        classroom = own.json()["data"]["classroom"]

        foreign = await test_client.post(
            "/api/classroom/create_classroom",
            json={"name": "1A", "school_id": south["_id"]},
            headers=headers,
        )
        assert foreign.status_code == 400
        assert foreign.json()["errors"] == "forbidden: cannot access school"

        first = await test_client.post(
            "/api/student/create_student",
            json={
                "name": "Ann", "email": "ann@north.edu",
                "school_id": north["_id"], "classroom_id": classroom["_id"],
            },
            headers=headers,
        )
        assert first.status_code == 200

        second = await test_client.post(
            "/api/student/create_student",
            json={
                "name": "Bob", "email": "bob@north.edu",
                "school_id": north["_id"], "classroom_id": classroom["_id"],
            },
            headers=headers,
        )
        assert second.json() == {"ok": False, "errors": "classroom at full capacity"}

        listed = await test_client.get(
            "/api/classroom/list_classrooms", params={"school_id": south["_id"]}, headers=headers
        )
        assert [c["school_id"] for c in listed.json()["data"]["classrooms"]] == [north["_id"]]

    @pytest.mark.asyncio
    async def test_transfer_and_history(self, test_client, superadmin_token):
        north = await create_school(test_client, superadmin_token, "North High")
        south = await create_school(test_client, superadmin_token, "South High")
        headers = {"token": superadmin_token}

        created = await test_client.post(
            "/api/student/create_student",
            json={"name": "Ann", "email": "ann@north.edu", "school_id": north["_id"]},
            headers=headers,
        )
        student_id = created.json()["data"]["student"]["_id"]

        moved = await test_client.post(
            "/api/student/transfer_student",
            json={"student_id": student_id, "to_school_id": south["_id"], "reason": "family move"},
            headers=headers,
        )
        assert moved.status_code == 200
        assert moved.json()["data"]["student"]["school_id"] == south["_id"]

        history = await test_client.get(
            "/api/student/get_student_history", params={"student_id": student_id}, headers=headers
        )
        data = history.json()["data"]
        assert data["student"]["current_school_id"] == south["_id"]
        assert len(data["history"]) == 1
        assert data["history"][0]["reason"] == "family move"


class TestEnvelopes:
    @pytest.mark.asyncio
    async def test_unknown_module(self, test_client):
        response = await test_client.get("/api/library/list_books")
        assert response.status_code == 404
        assert response.json() == {"ok": False, "errors": "module not found"}

    @pytest.mark.asyncio
    async def test_wrong_verb(self, test_client):
        response = await test_client.get("/api/user/login")
        assert response.status_code == 404
        assert response.json() == {"ok": False, "errors": "method not found"}

    @pytest.mark.asyncio
    async def test_non_exposed_method(self, test_client):
        response = await test_client.post("/api/user/seed_super_admin")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_path_uses_envelope(self, test_client):
        response = await test_client.get("/nowhere")
        assert response.status_code == 404
        assert response.json()["ok"] is False

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_login_limit(self, engine):
        from httpx import ASGITransport, AsyncClient

        from school_admin.main import create_app

        settings = Settings(login_rate_limit_requests=2)
        app = create_app(settings, engine)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            payload = {"username": "someone", "password": "password-123"}
            for _ in range(2):
                assert (await client.post("/api/user/login", json=payload)).status_code == 400
            limited = await client.post("/api/user/login", json=payload)

        assert limited.status_code == 429
        assert limited.json()["ok"] is False
        assert "Retry-After" in limited.headers


class TestFormBodies:
    @pytest.mark.asyncio
    async def test_capacity_updated_from_form_still_enforced(self, test_client, superadmin_token):
        school = await create_school(test_client, superadmin_token)
        headers = {"token": superadmin_token}
        created = await test_client.post(
            "/api/classroom/create_classroom",
            json={"name": "2B", "school_id": school["_id"], "capacity": 2},
            headers=headers,
        )
        classroom_id = created.json()["data"]["classroom"]["_id"]

        updated = await test_client.put(
            "/api/classroom/update_classroom",
            data={"classroom_id": classroom_id, "capacity": "1"},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["capacity"] == 1

        students = [
            await test_client.post(
                "/api/student/create_student",
                json={
                    "name": name, "email": f"{name.lower()}@north.edu",
                    "school_id": school["_id"], "classroom_id": classroom_id,
                },
                headers=headers,
            )
            for name in ("Ann", "Bob")
        ]
        assert students[0].status_code == 200
        assert students[1].status_code == 400
        assert students[1].json() == {"ok": False, "errors": "classroom at full capacity"}

    @pytest.mark.asyncio
    async def test_non_numeric_capacity_rejected(self, test_client, superadmin_token):
        school = await create_school(test_client, superadmin_token)
        response = await test_client.put(
            "/api/school/update_school",
            data={"school_id": school["_id"], "capacity": "plenty"},
            headers={"token": superadmin_token},
        )
        assert response.status_code == 400
        assert response.json() == {"ok": False, "errors": "capacity must be a number"}
