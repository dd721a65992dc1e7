import io
from datetime import date, timedelta
from pathlib import Path

import pytest

from app.fbms.crud import ServiceError
from app.fbms.modules.documents.models import Document
from app.fbms.modules.documents.service import (
    build_storage_key,
    document_stats,
    documents,
    expiry_report,
    search_documents,
    upload_document,
    validate_upload,
)
from app.fbms.modules.family.service import members
from app.fbms.storage import LocalStorage, StorageError


def _upload(client, csrf, *, content=b"%PDF-1.4 test", filename="passport scan.pdf",
            mimetype="application/pdf", **fields):
    data = csrf(**{"title": "Ravi passport", "category": "passport", **fields})
    data["file"] = (io.BytesIO(content), filename, mimetype)
    return client.post("/documents/new", data=data, content_type="multipart/form-data")


def test_upload_form(admin_client):
    r = admin_client.get("/documents/new")
    assert r.status_code == 200
    assert b'type="file"' in r.data
    assert b'enctype="multipart/form-data"' in r.data


def test_upload_download_delete(app, admin_client, csrf, tmp_path):
    r = _upload(admin_client, csrf, expiry_date="2030-01-01", tags="id, travel")
    assert r.status_code == 302

    with app.app_context():
        doc = documents.list()[0]
    assert doc.file_name == "passport_scan.pdf"
    assert doc.file_size == len(b"%PDF-1.4 test")
    assert doc.mime_type == "application/pdf"
    assert doc.tags == ["id", "travel"]
    assert doc.file_data.startswith(f"documents/passport/{date.today().isoformat()}/")
    stored = Path(app.config["STORAGE_ROOT"]) / doc.file_data
    assert stored.read_bytes() == b"%PDF-1.4 test"

    r = admin_client.get(f"/documents/{doc.id}")
    assert r.status_code == 200
    assert b"Ravi passport" in r.data
    assert b"Download" in r.data

    r = admin_client.get(f"/documents/{doc.id}/download")
    assert r.status_code == 200
    assert r.data == b"%PDF-1.4 test"
    assert "passport_scan.pdf" in r.headers["Content-Disposition"]

    r = admin_client.post(f"/documents/{doc.id}/delete", data=csrf())
    assert r.status_code == 302
    assert not stored.exists()
    assert b"Ravi passport" not in admin_client.get("/documents").data


def test_upload_requires_file(admin_client, csrf):
    r = admin_client.post("/documents/new", data=csrf(title="No file", category="pan"), content_type="multipart/form-data")
    assert r.status_code == 400
    assert b"File is required." in r.data


def test_upload_rejects_disallowed_type(app, admin_client, csrf):
    r = _upload(admin_client, csrf, content=b"MZ...", filename="setup.exe", mimetype="application/x-msdownload")
    assert r.status_code == 400
    assert b"is not allowed" in r.data
    with app.app_context():
        assert documents.list() == []


def test_upload_rejects_oversized_file(app, admin_client, csrf):
    app.config["MAX_DOCUMENT_BYTES"] = 10
    r = _upload(admin_client, csrf, content=b"x" * 11, filename="big.txt", mimetype="text/plain")
    assert r.status_code == 400
    assert b"File is too large" in r.data


def test_edit_metadata_only(app, admin_client, csrf):
    _upload(admin_client, csrf)
    with app.app_context():
        doc = documents.list()[0]

    r = admin_client.post(f"/documents/{doc.id}/edit", data=csrf(title="Passport (renewed)", category="passport"))
    assert r.status_code == 302
    with app.app_context():
        updated = documents.get(doc.id)
    assert updated.title == "Passport (renewed)"
    assert updated.file_data == doc.file_data


def test_legacy_data_url_download(app, admin_client):
    with app.app_context():
        doc = documents.create(
            {"title": "Old scan", "category": "aadhar", "file_data": "data:text/plain;base64,aGVsbG8=",
             "file_name": "old.txt", "file_size": 5, "mime_type": "text/plain"}
        )
    r = admin_client.get(f"/documents/{doc.id}/download")
    assert r.status_code == 200
    assert r.data == b"hello"


def test_search_and_member_filter(app, admin_client, csrf):
    with app.app_context():
        m = members.create({"full_name": "Ravi Kumar", "nickname": "Ravi", "relationship": "self"})
    _upload(admin_client, csrf, family_member_id=m.id)
    _upload(admin_client, csrf, title="Land deed", category="house_documents", filename="deed.pdf")

    with app.app_context():
        assert [d.title for d in search_documents(query="deed")] == ["Land deed"]
        assert [d.title for d in search_documents(family_member_id=m.id)] == ["Ravi passport"]
        assert [d.title for d in search_documents(category="passport", query="ravi")] == ["Ravi passport"]

    r = admin_client.get("/documents?q=deed")
    assert r.status_code == 200
    assert b"Land deed" in r.data
    assert b"deed.pdf" in r.data
    assert b"passport_scan.pdf" not in r.data

    assert b"Ravi passport" in admin_client.get(f"/family/{m.id}").data


def test_member_cannot_delete_document(app, member_client, csrf):
    _upload(member_client, csrf)
    with app.app_context():
        doc = documents.list()[0]
    assert member_client.post(f"/documents/{doc.id}/delete", data=csrf()).status_code == 403


def test_expiry_report_and_stats():
    today = date(2024, 6, 1)
    rows = [
        Document(title="expired", category="passport", expiry_date=today - timedelta(days=3)),
        Document(title="soon", category="passport", expiry_date=today + timedelta(days=10)),
        Document(title="later", category="pan", expiry_date=today + timedelta(days=100)),
        Document(title="never", category="aadhar"),
    ]
    report = expiry_report(rows, today=today)
    assert [(i.document.title, i.days_until_expiry, i.is_expired) for i in report] == [
        ("expired", -3, True),
        ("soon", 10, False),
    ]
    stats = document_stats(rows, today=today)
    assert (stats.total, stats.expired, stats.expiring, stats.without_expiry) == (4, 1, 1, 1)
    assert stats.by_category["passport"] == 2


def test_storage_key_and_upload_validation():
    key = build_storage_key("pan", "../../etc/passwd", date(2024, 6, 1))
    assert key.startswith("documents/pan/2024-06-01/")
    assert key.endswith("-etc_passwd")
    assert validate_upload(b"", "application/pdf", max_bytes=10) == ["File is empty."]
    assert validate_upload(b"abc", "application/pdf", max_bytes=10) == []


def test_failed_insert_keeps_store_error_when_cleanup_fails(app, monkeypatch):
    def reject(values):
        raise ServiceError("Failed to create document: HTTP 503 from data store")

    def broken_delete(self, key):
        raise StorageError(f"cannot delete {key}")

    monkeypatch.setattr(documents, "create", reject)
    monkeypatch.setattr(LocalStorage, "delete", broken_delete)
    with app.app_context():
        with pytest.raises(ServiceError, match="HTTP 503") as exc:
            upload_document({"title": "Deed", "category": "house_documents"}, b"%PDF-1.4", "deed.pdf",
                            "application/pdf")
    assert not exc.value.is_validation
