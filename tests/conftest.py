"""
Pytest configuration and shared fixtures for the Group Directory API tests.

This file provides reusable test fixtures including:
- Per-test settings pointing at a temporary data directory
- A bootstrapped application and an async HTTP client for it
- Store / upload handler / listing service instances for unit tests
- Sample submission data
"""

import io
import json

import pytest
from fastapi import UploadFile
from httpx import ASGITransport, AsyncClient
from starlette.datastructures import Headers

from app.config import Settings
from app.db.json_store import JsonRecordStore, init_storage
from app.main import bootstrap_services, create_app
from app.services.listing_service import ListingService
from app.services.upload_handler import UploadHandler

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "DATA_DIR": str(tmp_path / "data"),
        "PUBLIC_DIR": str(tmp_path / "public"),
        "RATE_LIMIT_ENABLED": False,
        "METRICS_ENABLED": False,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_upload(data: bytes = PNG_BYTES, filename: str = "cover.png", content_type: str = "image/png") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def write_document(settings: Settings, groups: list) -> None:
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.db_path.write_text(json.dumps({"groups": groups}), encoding="utf-8")


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def record_store(test_settings) -> JsonRecordStore:
    """A store over a freshly initialized, empty document."""
    return init_storage(test_settings)


@pytest.fixture
def upload_handler(test_settings, record_store) -> UploadHandler:
    return UploadHandler(test_settings)


@pytest.fixture
def listing_service(test_settings, record_store, upload_handler) -> ListingService:
    return ListingService(record_store, upload_handler, test_settings)


@pytest.fixture
def test_app(test_settings):
    """Application with storage bootstrapped the same way the lifespan does it."""
    app = create_app(test_settings)
    bootstrap_services(app, test_settings)
    return app


@pytest.fixture
async def test_client(test_app):
    """Async HTTP client talking to the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client


@pytest.fixture
def listing_form():
    """Provide a valid submission as multipart form fields."""
    return {
        "username": "alice",
        "groupName": "Readers",
        "groupLink": "https://chat.whatsapp.com/ABC123",
    }
