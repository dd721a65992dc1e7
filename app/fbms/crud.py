"""
Generic data-access service over the configured ``Store``.

Every entity gets the same five operations (list, get, create, update,
delete) through ``TableService``; feature modules add their own queries on
top. Store failures are re-raised as ``ServiceError`` with a ``kind`` of
``remote`` (network / server trouble) or ``validation`` (the store rejected
the data), so routes can decide between an error page and a re-rendered form.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from app.fbms.db import get_store
from app.fbms.models import Base
from app.fbms.store import Filter, Store, StoreError, StoreValidationError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Base)

REMOTE = "remote"
VALIDATION = "validation"


class ServiceError(RuntimeError):
    def __init__(self, message: str, *, kind: str = REMOTE):
        super().__init__(message)
        self.kind = kind

    @property
    def is_validation(self) -> bool:
        return self.kind == VALIDATION


def service_error(action: str, e: StoreError) -> ServiceError:
    kind = VALIDATION if isinstance(e, StoreValidationError) else REMOTE
    logger.error("Failed to %s: %s", action, e)
    return ServiceError(f"Failed to {action}: {e}", kind=kind)


class TableService(Generic[R]):
    """
    CRUD for one table, returning typed records.

    ``label`` is the plural used in messages ("family members"), ``singular``
    the single form ("family member").
    """

    def __init__(
        self,
        model: type[R],
        *,
        label: str,
        singular: str,
        order_by: str = "created_at",
        descending: bool = True,
    ):
        self.model = model
        self.table = model.__tablename__
        self.label = label
        self.singular = singular
        self.order_by = order_by
        self.descending = descending

    def store(self) -> Store:
        return get_store()

    def select(
        self,
        action: str,
        *,
        filters: Sequence[Filter] = (),
        any_of: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool | None = None,
        limit: int | None = None,
    ) -> list[R]:
        try:
            rows = self.store().select(
                self.table,
                filters=filters,
                any_of=any_of,
                order_by=order_by or self.order_by,
                descending=self.descending if descending is None else descending,
                limit=limit,
            )
        except StoreError as e:
            raise service_error(action, e) from e
        return [self.model.from_row(r) for r in rows]

    def list(self, *filters: Filter) -> list[R]:
        return self.select(f"fetch {self.label}", filters=filters)

    def get(self, record_id: str) -> R | None:
        try:
            rows = self.store().select(self.table, filters=[Filter("id", "eq", record_id)], limit=1)
        except StoreError as e:
            raise service_error(f"fetch {self.singular}", e) from e
        return self.model.from_row(rows[0]) if rows else None

    def create(self, values: dict[str, Any]) -> R:
        # Omit empty values so column defaults apply.
        row = {k: v for k, v in values.items() if v is not None}
        try:
            stored = self.store().insert(self.table, row)
        except StoreError as e:
            raise service_error(f"create {self.singular}", e) from e
        record = self.model.from_row(stored)
        logger.info("Created %s id=%s", self.singular, getattr(record, "id", None))
        return record

    def update(self, record_id: str, values: dict[str, Any]) -> R | None:
        changes = dict(values)
        if "updated_at" in self.model.column_names():
            changes["updated_at"] = datetime.now(timezone.utc)
        try:
            stored = self.store().update(self.table, record_id, changes)
        except StoreError as e:
            raise service_error(f"update {self.singular}", e) from e
        if stored is None:
            return None
        logger.info("Updated %s id=%s", self.singular, record_id)
        return self.model.from_row(stored)

    def delete(self, record_id: str) -> None:
        try:
            self.store().delete(self.table, record_id)
        except StoreError as e:
            raise service_error(f"delete {self.singular}", e) from e
        logger.info("Deleted %s id=%s", self.singular, record_id)
