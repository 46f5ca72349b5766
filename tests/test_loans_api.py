"""End-to-end tests for the /loans endpoints."""

from datetime import timedelta

from loan_tracker.models.loan import Loan, LoanPhoto
from loan_tracker.models.reminder import ReminderLog
from loan_tracker.services.photos import PhotoAttachmentManager
from loan_tracker.utils.timezone import now_utc
from tests.helpers import iso, loan_payload, parse_dt

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64


def _create(client, headers, **overrides):
    response = client.post("/loans", json=loan_payload(**overrides), headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def _return(client, headers, loan_id, state_end="Good", returned_at=None):
    return client.patch(
        f"/loans/{loan_id}/return",
        json={"state_end": state_end, "returned_at": iso(returned_at or now_utc())},
        headers=headers,
    )


def test_create_and_fetch(client, owner_headers):
    created = _create(client, owner_headers, quantity=2)

    assert created["status"] == "active"
    assert created["is_overdue"] is False
    assert created["returned_at"] is None
    assert created["state_end"] is None
    assert created["photos"] == []

    fetched = client.get(f"/loans/{created['id']}", headers=owner_headers)
    assert fetched.status_code == 200
    body = fetched.json()
    assert body["quantity"] == 2
    assert body["reminders"] == []
    assert body["photos"] == []


def test_create_validation_lists_every_field(client, owner_headers):
    response = client.post(
        "/loans",
        json={"recipient_name": "A", "item_name": "B", "quantity": 0, "state_start": ""},
        headers=owner_headers,
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["category"] == "validation_error"
    assert set(error["fields"]) == {
        "recipient_name", "item_name", "quantity", "borrowed_at", "return_by", "state_start",
    }


def test_create_rejects_quantity_too_large_to_store(client, owner_headers):
    response = client.post("/loans", json=loan_payload(quantity=2**70), headers=owner_headers)

    assert response.status_code == 400
    assert list(response.json()["error"]["fields"]) == ["quantity"]

    at_limit = client.post("/loans", json=loan_payload(quantity=2_147_483_647), headers=owner_headers)
    assert at_limit.status_code == 200
    assert client.get("/loans", headers=owner_headers).json()[0]["quantity"] == 2_147_483_647


def test_create_rejects_due_date_before_borrow_date(client, owner_headers):
    now = now_utc()
    response = client.post(
        "/loans",
        json=loan_payload(borrowed_at=iso(now), return_by=iso(now - timedelta(days=1))),
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert list(response.json()["error"]["fields"]) == ["return_by"]


def test_malformed_json_is_a_validation_error(client, owner_headers):
    response = client.post(
        "/loans",
        content=b"{not json",
        headers={**owner_headers, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["category"] == "validation_error"


def test_list_newest_first_and_scoped(client, owner_headers, other_headers):
    first = _create(client, owner_headers, item_name="First")
    second = _create(client, owner_headers, item_name="Second")
    _create(client, other_headers, item_name="Theirs")

    response = client.get("/loans", headers=owner_headers)

    assert response.status_code == 200
    assert [loan["id"] for loan in response.json()] == [second["id"], first["id"]]


def test_other_user_gets_not_found(client, owner_headers, other_headers):
    loan = _create(client, owner_headers)

    fetched = client.get(f"/loans/{loan['id']}", headers=other_headers)
    returned = _return(client, other_headers, loan["id"])
    missing = client.get("/loans/no-such-loan", headers=other_headers)

    assert fetched.status_code == returned.status_code == 404
    assert fetched.json() == missing.json()
    assert loan["recipient_name"] not in fetched.text

    still_open = client.get(f"/loans/{loan['id']}", headers=owner_headers).json()
    assert still_open["returned_at"] is None


def test_past_due_loan_is_overdue_without_stored_flag(client, db, owner_headers):
    now = now_utc()
    loan = _create(
        client,
        owner_headers,
        borrowed_at=iso(now - timedelta(days=10)),
        return_by=iso(now - timedelta(days=1)),
    )

    body = client.get(f"/loans/{loan['id']}", headers=owner_headers).json()
    assert body["is_overdue"] is True
    assert body["status"] == "overdue"
    assert "overdue" not in Loan.__table__.columns

    stats = client.get("/loans/stats", headers=owner_headers).json()
    assert stats == {"active": 0, "overdue": 1, "returned": 0, "total": 1}

    overdue = client.get("/loans", params={"status": "overdue"}, headers=owner_headers).json()
    assert [item["id"] for item in overdue] == [loan["id"]]


def test_return_twice_keeps_first_state(client, owner_headers):
    loan = _create(client, owner_headers)
    first_at = now_utc()

    first = _return(client, owner_headers, loan["id"], "Good", first_at)
    assert first.status_code == 200
    assert first.json()["status"] == "returned"
    assert first.json()["state_end"] == "Good"

    second = _return(client, owner_headers, loan["id"], "Damaged", first_at + timedelta(hours=1))
    assert second.status_code == 400
    assert second.json()["error"]["category"] == "conflict"

    stored = client.get(f"/loans/{loan['id']}", headers=owner_headers).json()
    assert stored["state_end"] == "Good"
    assert parse_dt(stored["returned_at"]) == first_at


def test_return_validation(client, owner_headers):
    loan = _create(client, owner_headers)

    response = client.patch(f"/loans/{loan['id']}/return", json={"state_end": "x"}, headers=owner_headers)

    assert response.status_code == 400
    assert set(response.json()["error"]["fields"]) == {"state_end", "returned_at"}


def test_returned_loan_is_never_overdue(client, owner_headers):
    now = now_utc()
    loan = _create(
        client,
        owner_headers,
        borrowed_at=iso(now - timedelta(days=10)),
        return_by=iso(now - timedelta(days=5)),
    )
    _return(client, owner_headers, loan["id"], "Scratched", now - timedelta(days=1))

    body = client.get(f"/loans/{loan['id']}", headers=owner_headers).json()
    assert body["status"] == "returned"
    assert body["is_overdue"] is False


def test_stats_partition(client, owner_headers, other_headers):
    now = now_utc()
    _create(client, owner_headers)
    _create(client, owner_headers)
    _create(client, owner_headers, borrowed_at=iso(now - timedelta(days=3)), return_by=iso(now - timedelta(days=1)))
    done = _create(client, owner_headers)
    _return(client, owner_headers, done["id"])
    _create(client, other_headers)

    stats = client.get("/loans/stats", headers=owner_headers).json()

    assert stats == {"active": 2, "overdue": 1, "returned": 1, "total": 4}
    assert len(client.get("/loans", params={"status": "active"}, headers=owner_headers).json()) == 2
    assert len(client.get("/loans", params={"status": "returned"}, headers=owner_headers).json()) == 1


def test_unknown_status_filter(client, owner_headers):
    response = client.get("/loans", params={"status": "lost"}, headers=owner_headers)
    assert response.status_code == 400


def test_upload_and_list_photos(client, blob_store, owner_headers):
    loan = _create(client, owner_headers)

    first = client.post(
        f"/loans/{loan['id']}/photos",
        files={"file": ("before.jpg", JPEG, "image/jpeg")},
        data={"type": "start"},
        headers=owner_headers,
    )
    second = client.post(
        f"/loans/{loan['id']}/photos",
        files={"file": ("after.png", JPEG, "image/png")},
        headers=owner_headers,
    )

    assert first.status_code == 200, first.text
    assert first.json()["type"] == "start"
    assert second.json()["type"] == "loan"
    assert first.json()["url"].startswith("/uploads/loans/")
    assert len(blob_store.writes) == 2

    photos = client.get(f"/loans/{loan['id']}/photos", headers=owner_headers).json()
    assert [p["id"] for p in photos] == [second.json()["id"], first.json()["id"]]

    listed = client.get("/loans", headers=owner_headers).json()
    assert len(listed[0]["photos"]) == 2


def _spy_on_reads(monkeypatch):
    reads = []
    real_attach = PhotoAttachmentManager.attach

    def attach(self, owner_id, loan_id, file_content, file_meta, photo_type=None):
        def read(limit):
            reads.append(limit)
            return file_content(limit)

        content = read if callable(file_content) else file_content
        return real_attach(self, owner_id, loan_id, content, file_meta, photo_type)

    monkeypatch.setattr(PhotoAttachmentManager, "attach", attach)
    return reads


def test_oversized_upload_writes_nothing(client, db, blob_store, owner_headers, monkeypatch):
    loan = _create(client, owner_headers)
    reads = _spy_on_reads(monkeypatch)

    response = client.post(
        f"/loans/{loan['id']}/photos",
        files={"file": ("big.jpg", b"\x00" * (6 * 1024 * 1024), "image/jpeg")},
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert "file" in response.json()["error"]["fields"]
    assert reads == []
    assert blob_store.writes == []
    assert db.query(LoanPhoto).count() == 0


def test_accepted_upload_reads_at_most_one_byte_past_the_cap(client, app, blob_store, owner_headers, monkeypatch):
    loan = _create(client, owner_headers)
    reads = _spy_on_reads(monkeypatch)

    response = client.post(
        f"/loans/{loan['id']}/photos",
        files={"file": ("small.jpg", JPEG, "image/jpeg")},
        headers=owner_headers,
    )

    assert response.status_code == 200, response.text
    assert reads == [app.state.settings.max_upload_bytes + 1]
    assert blob_store.writes[0][1] == len(JPEG)


def test_upload_bad_type_on_foreign_loan_is_not_found(client, blob_store, owner_headers, other_headers):
    loan = _create(client, owner_headers)

    response = client.post(
        f"/loans/{loan['id']}/photos",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=other_headers,
    )

    assert response.status_code == 404
    assert response.json()["error"]["category"] == "not_found"
    assert blob_store.writes == []


def test_upload_bad_type_on_own_loan(client, owner_headers):
    loan = _create(client, owner_headers)

    response = client.post(
        f"/loans/{loan['id']}/photos",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert "image/webp" in response.json()["error"]["message"]


def test_upload_without_file(client, owner_headers):
    loan = _create(client, owner_headers)

    response = client.post(f"/loans/{loan['id']}/photos", data={"type": "start"}, headers=owner_headers)

    assert response.status_code == 400
    assert "file" in response.json()["error"]["fields"]


def test_photos_of_foreign_loan_are_not_found(client, owner_headers, other_headers):
    loan = _create(client, owner_headers)
    assert client.get(f"/loans/{loan['id']}/photos", headers=other_headers).status_code == 404


def test_detail_includes_reminders(client, db, owner_headers):
    loan = _create(client, owner_headers)
    db.add(ReminderLog(loan_id=loan["id"], subject="Please return the drill"))
    db.commit()

    body = client.get(f"/loans/{loan['id']}", headers=owner_headers).json()

    assert [r["subject"] for r in body["reminders"]] == ["Please return the drill"]


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200
