"""Shared fixtures: a throwaway SQLite store and explicit settings."""

import logging
from datetime import datetime, timezone

import pytest

from warranty_intake.intake.schema import Contact, Homeowner
from warranty_intake.storage.call_store import CallStore
from warranty_intake.utils.config import Settings

# Setup logging for tests
logging.basicConfig(level=logging.INFO)

TEST_SECRET = "test-vapi-secret"


@pytest.fixture
def settings(tmp_path):
    """Settings that ignore the developer's .env."""
    return Settings(
        _env_file=None,
        vapi_secret=TEST_SECRET,
        vapi_api_key="test-api-key",
        vapi_api_base_url="https://vapi.test",
        transfer_phone_number="+15550001111",
        fallback_fetch_delay_seconds=0.0,
        database_path=tmp_path / "intake.db",
        notification_webhook_url=None,
    )


@pytest.fixture
def auth_headers():
    return {"x-vapi-secret": TEST_SECRET}


@pytest.fixture
def store(settings):
    """Empty intake store in a temp directory."""
    return CallStore(settings.database_path, busy_timeout=settings.database_busy_timeout_seconds)


@pytest.fixture
def seeded_store(store):
    """Store with one allowlisted contact and a few homeowners."""
    store.upsert_contacts([
        Contact(phone_number="+15551234567", owner_id="owner-1", display_name="Site Superintendent"),
    ])
    for homeowner in (
        Homeowner(
            id="ho-1",
            name="Jordan Lee",
            address="123 Main St, Seattle, WA 98101",
            last_active_at=datetime(2026, 9, 30, 17, 0, tzinfo=timezone.utc),
        ),
        Homeowner(
            id="ho-2",
            name="Sam Rivera",
            address="4500 Northeast Lakeview Drive, Kirkland, WA 98033",
        ),
        Homeowner(
            id="ho-3",
            name="Alex Chen",
            address="88 Cedar Court, Bellevue, WA 98004",
        ),
    ):
        store.upsert_homeowner(homeowner)
    return store
