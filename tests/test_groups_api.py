"""
Tests for the HTTP surface.

Tests cover:
- Health check
- Creating listings via multipart form (with and without image)
- 400 / 500 error bodies
- Search and ordering through GET /api/groups
- Serving uploaded images and persistence across app restarts
"""

import threading

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.exceptions import StorageFault
from app.db.json_store import JsonRecordStore
from app.main import bootstrap_services, create_app

from conftest import PNG_BYTES, make_settings, write_document


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client: AsyncClient):
        response = await test_client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, test_client: AsyncClient):
        response = await test_client.get("/api/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"


class TestCreateGroup:
    """Tests for POST /api/groups"""

    @pytest.mark.asyncio
    async def test_create_then_search(self, test_client: AsyncClient, listing_form):
        response = await test_client.post("/api/groups", data=listing_form)

        assert response.status_code == 201
        created = response.json()
        assert created["id"]
        assert created["username"] == "alice"
        assert created["groupName"] == "Readers"
        assert created["groupLink"] == "https://chat.whatsapp.com/ABC123"
        assert created["imagePath"] is None
        assert isinstance(created["createdAt"], int)

        response = await test_client.get("/api/groups", params={"q": "read"})

        assert response.status_code == 200
        assert response.json() == [created]

    @pytest.mark.asyncio
    async def test_create_adds_exactly_one_record(self, test_client: AsyncClient, listing_form):
        before = (await test_client.get("/api/groups")).json()

        await test_client.post("/api/groups", data=listing_form)

        after = (await test_client.get("/api/groups")).json()
        assert len(after) == len(before) + 1

    @pytest.mark.asyncio
    async def test_create_with_image(self, test_client: AsyncClient, listing_form):
        response = await test_client.post(
            "/api/groups",
            data=listing_form,
            files={"groupImage": ("cover.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 201
        image_path = response.json()["imagePath"]
        assert image_path.startswith("/uploads/groupImage-")
        assert image_path.endswith(".png")

        image = await test_client.get(image_path)

        assert image.status_code == 200
        assert image.content == PNG_BYTES

    @pytest.mark.asyncio
    async def test_html_upload_is_not_served_as_html(self, test_client: AsyncClient, listing_form):
        response = await test_client.post(
            "/api/groups",
            data=listing_form,
            files={"groupImage": ("pwn.html", b"<script>alert(1)</script>", "image/png")},
        )

        assert response.status_code == 201
        image_path = response.json()["imagePath"]
        assert not image_path.endswith(".html")

        served = await test_client.get(image_path)

        assert served.status_code == 200
        assert not served.headers["content-type"].startswith("text/html")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["username", "groupName", "groupLink"])
    async def test_missing_field(self, test_client: AsyncClient, listing_form, missing):
        listing_form[missing] = ""

        response = await test_client.post("/api/groups", data=listing_form)

        assert response.status_code == 400
        assert response.json() == {"error": "All fields are required."}
        assert (await test_client.get("/api/groups")).json() == []

    @pytest.mark.asyncio
    async def test_omitted_field(self, test_client: AsyncClient, listing_form):
        del listing_form["groupLink"]

        response = await test_client.post("/api/groups", data=listing_form)

        assert response.status_code == 400
        assert response.json() == {"error": "All fields are required."}

    @pytest.mark.asyncio
    async def test_invalid_link(self, test_client: AsyncClient, listing_form):
        listing_form["groupLink"] = "https://t.me/joinchat/XYZ"

        response = await test_client.post("/api/groups", data=listing_form)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid group link."}
        assert (await test_client.get("/api/groups")).json() == []

    @pytest.mark.asyncio
    async def test_unsupported_image_type(self, test_client: AsyncClient, listing_form, test_settings):
        response = await test_client.post(
            "/api/groups",
            data=listing_form,
            files={"groupImage": ("script.sh", b"#!/bin/sh\n", "text/x-shellscript")},
        )

        assert response.status_code == 400
        assert "error" in response.json()
        assert list(test_settings.uploads_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_storage_failure_returns_500(self, test_client: AsyncClient, listing_form, monkeypatch):
        def fail_write(self, document):
            raise StorageFault("Database document could not be written.", operation="write", detail="disk full")

        monkeypatch.setattr(JsonRecordStore, "_write", fail_write)

        response = await test_client.post("/api/groups", data=listing_form)

        assert response.status_code == 500
        body = response.json()
        assert body == {"error": "Internal storage error."}
        assert "disk full" not in response.text


class TestListGroups:
    """Tests for GET /api/groups"""

    @pytest.fixture
    def seeded_settings(self, tmp_path):
        settings = make_settings(tmp_path)
        write_document(settings, [
            {"id": "a", "username": "carol", "groupName": "Book Club",
             "groupLink": "https://chat.whatsapp.com/A", "imagePath": None, "createdAt": 1000},
            {"id": "b", "username": "dave", "groupName": "Chess Night",
             "groupLink": "https://chat.whatsapp.com/B", "imagePath": None, "createdAt": 3000},
            {"id": "c", "username": "Bookish Erin", "groupName": "Poetry",
             "groupLink": "https://chat.whatsapp.com/C", "imagePath": None, "createdAt": 2000},
        ])
        return settings

    @pytest.fixture
    async def seeded_client(self, seeded_settings):
        app = create_app(seeded_settings)
        bootstrap_services(app, seeded_settings)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client

    @pytest.mark.asyncio
    async def test_list_sorted_newest_first(self, seeded_client: AsyncClient):
        response = await seeded_client.get("/api/groups")

        assert response.status_code == 200
        assert [group["id"] for group in response.json()] == ["b", "c", "a"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["book", "CLUB", "k c"])
    async def test_search_case_insensitive(self, seeded_client: AsyncClient, query):
        response = await seeded_client.get("/api/groups", params={"q": query})

        assert "a" in [group["id"] for group in response.json()]

    @pytest.mark.asyncio
    async def test_search_matches_username_too(self, seeded_client: AsyncClient):
        response = await seeded_client.get("/api/groups", params={"q": "BOOK"})

        assert [group["id"] for group in response.json()] == ["c", "a"]

    @pytest.mark.asyncio
    async def test_empty_query_returns_all(self, seeded_client: AsyncClient):
        response = await seeded_client.get("/api/groups", params={"q": ""})

        assert len(response.json()) == 3

    @pytest.mark.asyncio
    async def test_document_corrupted_after_startup_returns_500(self, seeded_client: AsyncClient, seeded_settings):
        seeded_settings.db_path.write_text("{\"groups\": [", encoding="utf-8")

        response = await seeded_client.get("/api/groups")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal storage error."}

    @pytest.mark.asyncio
    async def test_reads_run_off_the_event_loop_thread(self, seeded_client: AsyncClient, monkeypatch):
        threads = []
        store_all = JsonRecordStore.all

        def record_all(self):
            threads.append(threading.get_ident())
            return store_all(self)

        monkeypatch.setattr(JsonRecordStore, "all", record_all)

        response = await seeded_client.get("/api/groups")

        assert response.status_code == 200
        assert threads and threads[0] != threading.get_ident()


class TestPersistence:

    @pytest.mark.asyncio
    async def test_records_survive_restart(self, tmp_path, listing_form):
        settings = make_settings(tmp_path)

        app = create_app(settings)
        bootstrap_services(app, settings)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            created = (await client.post("/api/groups", data=listing_form)).json()

        restarted = create_app(settings)
        bootstrap_services(restarted, settings)
        async with AsyncClient(transport=ASGITransport(app=restarted), base_url="http://test") as client:
            listed = (await client.get("/api/groups")).json()

        assert listed == [created]

    @pytest.mark.asyncio
    async def test_startup_fails_on_malformed_document(self, tmp_path):
        settings = make_settings(tmp_path)
        settings.data_dir.mkdir(parents=True)
        settings.db_path.write_text("{\"groups\": [", encoding="utf-8")
        app = create_app(settings)

        with pytest.raises(StorageFault):
            async with app.router.lifespan_context(app):
                pass

    @pytest.mark.asyncio
    async def test_lifespan_bootstraps_storage(self, tmp_path):
        settings = make_settings(tmp_path)
        app = create_app(settings)

        async with app.router.lifespan_context(app):
            assert settings.uploads_dir.is_dir()
            assert app.state.listing_service.search() == []


class TestRateLimit:

    @pytest.fixture
    def limited_app(self, tmp_path):
        settings = make_settings(tmp_path, RATE_LIMIT_ENABLED=True, CREATE_RATE_LIMIT="20/minute")
        app = create_app(settings)
        bootstrap_services(app, settings)
        return app

    @pytest.mark.asyncio
    async def test_create_is_rate_limited(self, limited_app, listing_form):
        listing_form["groupLink"] = "not-a-link"

        async with AsyncClient(transport=ASGITransport(app=limited_app), base_url="http://test") as client:
            statuses = [
                (await client.post("/api/groups", data=listing_form)).status_code
                for _ in range(21)
            ]

        assert statuses[:20] == [400] * 20
        assert statuses[20] == 429

    @pytest.mark.asyncio
    async def test_forwarded_for_header_does_not_reset_limit(self, limited_app, listing_form):
        listing_form["groupLink"] = "not-a-link"

        async with AsyncClient(transport=ASGITransport(app=limited_app), base_url="http://test") as client:
            statuses = [
                (await client.post(
                    "/api/groups",
                    data=listing_form,
                    headers={"X-Forwarded-For": f"10.0.0.{i}"},
                )).status_code
                for i in range(40)
            ]

        assert statuses.count(429) == 20

    @pytest.mark.asyncio
    async def test_limits_are_per_application(self, tmp_path, limited_app, listing_form):
        listing_form["groupLink"] = "not-a-link"
        unlimited_settings = make_settings(tmp_path / "other", RATE_LIMIT_ENABLED=False)
        unlimited_app = create_app(unlimited_settings)
        bootstrap_services(unlimited_app, unlimited_settings)

        async with AsyncClient(transport=ASGITransport(app=unlimited_app), base_url="http://test") as client:
            unlimited = [
                (await client.post("/api/groups", data=listing_form)).status_code
                for _ in range(25)
            ]
        async with AsyncClient(transport=ASGITransport(app=limited_app), base_url="http://test") as client:
            limited = [
                (await client.post("/api/groups", data=listing_form)).status_code
                for _ in range(21)
            ]

        assert 429 not in unlimited
        assert limited[20] == 429
