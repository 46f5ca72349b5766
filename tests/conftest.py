"""Test fixtures and configuration."""

import pytest
from fastapi.testclient import TestClient

from loan_tracker.config import Settings
from loan_tracker.main import create_app
from tests.helpers import RecordingBlobStore, login_headers


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret_key="test-secret-key",
        database_url="sqlite://",
        upload_dir=str(tmp_path / "uploads"),
        bcrypt_rounds=4,
        login_max_attempts=3,
    )


@pytest.fixture
def blob_store(settings):
    return RecordingBlobStore(settings.upload_dir, settings.upload_url_prefix)


@pytest.fixture
def app(settings, blob_store):
    return create_app(settings, blob_store=blob_store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def owner_headers(client):
    return login_headers(client, "owner@example.com")


@pytest.fixture
def other_headers(client):
    return login_headers(client, "other@example.com")
