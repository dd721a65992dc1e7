from __future__ import annotations

import base64
import binascii
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, BinaryIO

from flask import current_app
from werkzeug.utils import secure_filename

from app.fbms.crud import VALIDATION, ServiceError, TableService
from app.fbms.modules.documents.models import DOCUMENT_CATEGORIES, Document
from app.fbms.storage import StorageError, storage_from_config
from app.fbms.store import Filter

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = 30

ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
)


class DocumentService(TableService[Document]):
    """Document rows plus the file each one points at in file storage."""

    def delete(self, record_id: str) -> None:
        doc = self.get(record_id)
        super().delete(record_id)
        if doc is not None and doc.file_data and not is_data_url(doc.file_data):
            try:
                storage_from_config(current_app.config).delete(doc.file_data)
            except (StorageError, OSError) as e:
                # The row is gone; an orphaned file is only logged.
                logger.warning("Could not remove stored file %s: %s", doc.file_data, e)


documents = DocumentService(Document, label="documents", singular="document")


def build_storage_key(category: str, filename: str, upload_date: date | None = None) -> str:
    """Storage key for an uploaded document file (unique per upload)."""
    if upload_date is None:
        upload_date = date.today()
    safe_filename = secure_filename(filename) or "document.bin"
    return f"documents/{category}/{upload_date.isoformat()}/{uuid.uuid4().hex[:12]}-{safe_filename}"


def validate_upload(file_bytes: bytes, content_type: str, *, max_bytes: int) -> list[str]:
    errors = []
    if content_type not in ALLOWED_MIME_TYPES:
        errors.append(f'File type "{content_type}" is not allowed.')
    if not file_bytes:
        errors.append("File is empty.")
    elif len(file_bytes) > max_bytes:
        errors.append(f"File is too large (maximum {max_bytes // (1024 * 1024)}MB).")
    return errors


def upload_document(values: dict[str, Any], file_bytes: bytes, filename: str, content_type: str) -> Document:
    """
    Store the file, then insert the document row pointing at it. If the insert
    fails the stored file is removed again.
    """
    max_bytes = int(current_app.config.get("MAX_DOCUMENT_BYTES") or 10 * 1024 * 1024)
    errors = validate_upload(file_bytes, content_type, max_bytes=max_bytes)
    if errors:
        raise ServiceError(" ".join(errors), kind=VALIDATION)
    category = values.get("category") or "uncategorized"
    key = build_storage_key(category, filename)
    storage = storage_from_config(current_app.config)
    try:
        storage.put_bytes(key, file_bytes, content_type=content_type)
    except (StorageError, OSError) as e:
        logger.error("Failed to store document file %s: %s", key, e)
        raise ServiceError(f"Failed to store file: {e}") from e

    row = dict(values)
    row.update(
        file_data=key,
        file_name=secure_filename(filename) or "document.bin",
        file_size=len(file_bytes),
        mime_type=content_type,
    )
    try:
        return documents.create(row)
    except ServiceError:
        try:
            storage.delete(key)
        except (StorageError, OSError) as e:
            logger.warning("Could not remove stored file %s after failed insert: %s", key, e)
        raise


def is_data_url(value: str) -> bool:
    return value.startswith("data:")


def open_document(doc: Document) -> BinaryIO:
    """
    File contents of a document: a storage key, or a base64 data URL on rows
    written by the earlier browser client.
    """
    if not doc.file_data:
        raise ServiceError("Document has no file attached.", kind=VALIDATION)
    if is_data_url(doc.file_data):
        _, _, payload = doc.file_data.partition(",")
        try:
            return io.BytesIO(base64.b64decode(payload, validate=False))
        except (binascii.Error, ValueError) as e:
            raise ServiceError("Stored document data is corrupt.", kind=VALIDATION) from e
    try:
        return storage_from_config(current_app.config).open(doc.file_data)
    except StorageError as e:
        raise ServiceError(str(e)) from e


def documents_for_member(member_id: str) -> list[Document]:
    return documents.list(Filter("family_member_id", "eq", member_id))


def documents_for_property(property_id: str) -> list[Document]:
    return documents.list(Filter("property_id", "eq", property_id))


def documents_for_policy(policy_id: str) -> list[Document]:
    return documents.list(Filter("insurance_policy_id", "eq", policy_id))


def documents_by_category(category: str) -> list[Document]:
    return documents.list(Filter("category", "eq", category))


def search_documents(
    *,
    query: str | None = None,
    category: str | None = None,
    family_member_id: str | None = None,
    insurance_policy_id: str | None = None,
) -> list[Document]:
    filters: list[Filter] = []
    if category:
        filters.append(Filter("category", "eq", category))
    if family_member_id:
        filters.append(Filter("family_member_id", "eq", family_member_id))
    if insurance_policy_id:
        filters.append(Filter("insurance_policy_id", "eq", insurance_policy_id))
    any_of: list[Filter] = []
    if query and query.strip():
        term = f"%{query.strip()}%"
        any_of = [Filter(col, "ilike", term) for col in ("title", "file_name", "document_number", "issuer")]
    return documents.select("fetch documents", filters=filters, any_of=any_of)


@dataclass(frozen=True)
class ExpiryInfo:
    document: Document
    days_until_expiry: int

    @property
    def is_expired(self) -> bool:
        return self.days_until_expiry < 0


def expiry_report(rows: list[Document], *, today: date | None = None,
                  days: int = EXPIRY_WARNING_DAYS) -> list[ExpiryInfo]:
    """Expired and soon-to-expire documents, soonest first."""
    today = today or date.today()
    out = [
        ExpiryInfo(d, (d.expiry_date - today).days)
        for d in rows
        if d.expiry_date is not None and (d.expiry_date - today).days <= days
    ]
    return sorted(out, key=lambda i: i.days_until_expiry)


def expiring_documents(days: int = EXPIRY_WARNING_DAYS, *, today: date | None = None) -> list[Document]:
    today = today or date.today()
    return documents.select(
        "fetch expiring documents",
        filters=[Filter("expiry_date", "gte", today), Filter("expiry_date", "lte", today + timedelta(days=days))],
        order_by="expiry_date",
        descending=False,
    )


def expired_documents(*, today: date | None = None) -> list[Document]:
    today = today or date.today()
    return documents.select(
        "fetch expired documents",
        filters=[Filter("expiry_date", "lt", today)],
        order_by="expiry_date",
        descending=False,
    )


@dataclass(frozen=True)
class DocumentStats:
    total: int
    by_category: dict[str, int]
    expiring: int
    expired: int
    without_expiry: int


def document_stats(rows: list[Document], *, today: date | None = None) -> DocumentStats:
    report = expiry_report(rows, today=today)
    return DocumentStats(
        total=len(rows),
        by_category={c: sum(1 for d in rows if d.category == c) for c in DOCUMENT_CATEGORIES},
        expiring=sum(1 for i in report if not i.is_expired),
        expired=sum(1 for i in report if i.is_expired),
        without_expiry=sum(1 for d in rows if d.expiry_date is None),
    )
