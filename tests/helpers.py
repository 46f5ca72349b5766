"""Shared helpers for the test suite."""

from datetime import datetime, timedelta

from loan_tracker.models.user import User
from loan_tracker.services.blob_store import LocalBlobStore
from loan_tracker.utils.timezone import now_utc


class RecordingBlobStore(LocalBlobStore):
    """Local blob store that remembers every write it performed."""

    def __init__(self, base_dir: str, url_prefix: str):
        super().__init__(base_dir, url_prefix)
        self.writes = []

    def write(self, name, content, content_type=None):
        url = super().write(name, content, content_type)
        self.writes.append((name, len(content), content_type))
        return url


def iso(value: datetime) -> str:
    return value.isoformat()


def parse_dt(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def loan_payload(**overrides):
    now = now_utc()
    payload = {
        "recipient_name": "Ana",
        "item_name": "Drill",
        "description": "Cordless, with two batteries",
        "quantity": 1,
        "borrowed_at": iso(now - timedelta(days=1)),
        "return_by": iso(now + timedelta(days=7)),
        "state_start": "Like new",
    }
    payload.update(overrides)
    return payload


def make_user(db, email="owner@example.com"):
    user = User(email=email, password_hash="not-a-real-hash")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login_headers(client, email, password="secret123"):
    """Register (if needed) and log in; returns bearer headers."""
    client.post("/auth/register", json={"email": email, "password": password})
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    # Keep the cookie jar empty so each request is authenticated only by its headers
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
