"""
Data store backends.

All feature modules talk to the database through the small ``Store`` interface
below. Two backends exist:

- ``RestStore``: the hosted Supabase project, reached through its PostgREST
  REST/RPC endpoints (``/rest/v1/<table>``, ``/rest/v1/rpc/<fn>``).
- ``SqlStore``: a direct SQLAlchemy connection (Postgres, or SQLite for local
  runs and tests) using the table metadata declared in the module models.

Rows travel as plain dicts; normalization into typed records happens in the
service layer (see ``app.fbms.crud``).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

import httpx
from sqlalchemy import MetaData, Table, delete, insert, inspect, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, SQLAlchemyError, StatementError

logger = logging.getLogger(__name__)

OPS = ("eq", "neq", "lt", "lte", "gt", "gte", "in", "is", "isnot", "ilike")

# PostgREST error classes that mean "the request was rejected", not "the store is down".
_VALIDATION_STATUS = (400, 409, 422)
_VALIDATION_SQLSTATE_PREFIXES = ("22", "23")


class StoreError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class StoreValidationError(StoreError):
    pass


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in OPS:
            raise ValueError(f"Unsupported filter op {self.op!r}. Must be one of: {', '.join(OPS)}")


class Store:
    def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        any_of: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        schema: str | None = None,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def update(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        raise NotImplementedError

    def delete(self, table: str, record_id: str) -> None:
        raise NotImplementedError

    def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ---------- PostgREST ----------


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _quoted(value: Any) -> str:
    """Quote a value for use inside PostgREST list syntax: in.(...) and or=(...)."""
    s = _literal(value)
    if any(ch in s for ch in ',.:()" \\'):
        s = '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return s


def _operand(f: Filter, *, nested: bool = False) -> str:
    if f.op == "in":
        return "in.(" + ",".join(_quoted(v) for v in f.value) + ")"
    if f.op == "is":
        return f"is.{_literal(f.value)}"
    if f.op == "isnot":
        return f"not.is.{_literal(f.value)}"
    value = _literal(f.value)
    if f.op == "ilike":
        value = value.replace("%", "*")
    return f"{f.op}.{_quoted(value) if nested else value}"


def postgrest_params(
    *,
    filters: Iterable[Filter] = (),
    any_of: Sequence[Filter] = (),
    order_by: str | None = None,
    descending: bool = False,
    limit: int | None = None,
) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = [("select", "*")]
    for f in filters:
        params.append((f.column, _operand(f)))
    if any_of:
        params.append(("or", "(" + ",".join(f"{f.column}.{_operand(f, nested=True)}" for f in any_of) + ")"))
    if order_by:
        params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
    if limit is not None:
        params.append(("limit", str(limit)))
    return params


def _error_from_response(resp: httpx.Response, path: str) -> StoreError:
    code: str | None = None
    message = ""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or body.get("error") or ""
        details = body.get("details")
        if details:
            message = f"{message} ({details})"
    if not message:
        message = resp.text[:300] or resp.reason_phrase
    status = resp.status_code
    text = f"HTTP {status} from data store ({path}): {message}"
    if status in _VALIDATION_STATUS or (code or "")[:2] in _VALIDATION_SQLSTATE_PREFIXES:
        return StoreValidationError(text, status_code=status, code=code)
    return StoreError(text, status_code=status, code=code)


class RestStore(Store):
    """Supabase / PostgREST backend."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self.base_url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout_seconds,
            transport=transport,
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            resp = self._client.request(
                method,
                path,
                params=params,
                json=_jsonable(json) if json is not None else None,
                headers=headers,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Data store request failed: %s %s: %s", method, path, e)
            raise StoreError(f"Network error calling data store ({path}): {e}") from e
        if resp.status_code >= 400:
            err = _error_from_response(resp, path)
            logger.error("%s", err)
            raise err
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"Invalid JSON from data store ({path})", status_code=resp.status_code) from e

    def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        any_of: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        schema: str | None = None,
    ) -> list[dict[str, Any]]:
        params = postgrest_params(filters=filters, any_of=any_of, order_by=order_by, descending=descending, limit=limit)
        headers = {"Accept-Profile": schema} if schema else None
        data = self._request("GET", f"/{table}", params=params, headers=headers)
        return data if isinstance(data, list) else []

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        data = self._request("POST", f"/{table}", json=row, headers={"Prefer": "return=representation"})
        if isinstance(data, list) and data:
            return data[0]
        if isinstance(data, dict):
            return data
        raise StoreError(f"Data store returned no row for insert into {table}")

    def update(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        data = self._request(
            "PATCH",
            f"/{table}",
            params=[("id", f"eq.{record_id}")],
            json=changes,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(data, list):
            return data[0] if data else None
        return data if isinstance(data, dict) else None

    def delete(self, table: str, record_id: str) -> None:
        self._request("DELETE", f"/{table}", params=[("id", f"eq.{record_id}")], headers={"Prefer": "return=minimal"})

    def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        return self._request("POST", f"/rpc/{function}", json=params or {})

    def close(self) -> None:
        self._client.close()


# ---------- SQLAlchemy ----------


def _clause(t: Table, f: Filter):
    if f.column not in t.c:
        raise StoreValidationError(f"Could not find the '{f.column}' column of '{t.name}'", status_code=400)
    col = t.c[f.column]
    if f.op == "eq":
        return col == f.value
    if f.op == "neq":
        return col != f.value
    if f.op == "lt":
        return col < f.value
    if f.op == "lte":
        return col <= f.value
    if f.op == "gt":
        return col > f.value
    if f.op == "gte":
        return col >= f.value
    if f.op == "in":
        return col.in_(list(f.value))
    if f.op == "is":
        return col.is_(f.value)
    if f.op == "isnot":
        return col.is_not(f.value)
    return col.ilike(f.value)


def _matches(row: dict[str, Any], f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == "eq":
        return value == f.value
    if f.op == "neq":
        return value != f.value
    if f.op == "in":
        return value in f.value
    raise StoreValidationError(f"Filter op {f.op!r} is not supported on information_schema", status_code=400)


class SqlStore(Store):
    """Direct database backend over a SQLAlchemy engine."""

    def __init__(self, engine: Engine, metadata: MetaData):
        self.engine = engine
        self.metadata = metadata

    def _table(self, name: str) -> Table:
        try:
            return self.metadata.tables[name]
        except KeyError:
            raise StoreError(f"Unknown table {name!r}", status_code=404) from None

    def _check_columns(self, t: Table, row: dict[str, Any]) -> None:
        unknown = sorted(set(row) - set(t.c.keys()))
        if unknown:
            raise StoreValidationError(f"Could not find the '{unknown[0]}' column of '{t.name}'", status_code=400)

    def _wrap(self, e: SQLAlchemyError) -> StoreError:
        if isinstance(e, (IntegrityError, DataError)):
            return StoreValidationError(str(e.orig), status_code=409 if isinstance(e, IntegrityError) else 400)
        if isinstance(e, StatementError) and not isinstance(e, DBAPIError):
            # Bind-time failures (a value the column type cannot accept).
            return StoreValidationError(str(e), status_code=400)
        logger.error("Database error: %s", e)
        return StoreError(f"Database error: {e}")

    def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        any_of: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        schema: str | None = None,
    ) -> list[dict[str, Any]]:
        if schema == "information_schema":
            return self._information_schema(table, filters)
        t = self._table(table)
        stmt = select(t)
        for f in filters:
            stmt = stmt.where(_clause(t, f))
        if any_of:
            stmt = stmt.where(or_(*[_clause(t, f) for f in any_of]))
        if order_by:
            if order_by not in t.c:
                raise StoreValidationError(f"Could not find the '{order_by}' column of '{t.name}'", status_code=400)
            col = t.c[order_by]
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise self._wrap(e) from e
        return [dict(r) for r in rows]

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        t = self._table(table)
        self._check_columns(t, row)
        values = dict(row)
        if "id" in t.c and not values.get("id"):
            values["id"] = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        for stamp in ("created_at", "updated_at"):
            if stamp in t.c and values.get(stamp) is None:
                values[stamp] = now
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(t).values(**values))
                stored = conn.execute(select(t).where(t.c.id == values["id"])).mappings().one()
        except SQLAlchemyError as e:
            raise self._wrap(e) from e
        return dict(stored)

    def update(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        t = self._table(table)
        self._check_columns(t, changes)
        try:
            with self.engine.begin() as conn:
                if changes:
                    result = conn.execute(update(t).where(t.c.id == record_id).values(**changes))
                    if result.rowcount == 0:
                        return None
                stored = conn.execute(select(t).where(t.c.id == record_id)).mappings().one_or_none()
        except SQLAlchemyError as e:
            raise self._wrap(e) from e
        return dict(stored) if stored is not None else None

    def delete(self, table: str, record_id: str) -> None:
        t = self._table(table)
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(t).where(t.c.id == record_id))
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        # Only the SQL passthrough used by the maintenance scripts exists here.
        if function != "exec_sql":
            raise StoreError(f"Could not find the function {function!r}", status_code=404, code="PGRST202")
        sql = (params or {}).get("sql_query") or ""
        try:
            with self.engine.begin() as conn:
                conn.exec_driver_sql(sql)
        except SQLAlchemyError as e:
            raise self._wrap(e) from e
        return None

    def _information_schema(self, table: str, filters: Sequence[Filter]) -> list[dict[str, Any]]:
        if table != "columns":
            raise StoreError(f"Unknown table 'information_schema.{table}'", status_code=404)
        table_names = [f.value for f in filters if f.column == "table_name" and f.op == "eq"]
        try:
            insp = inspect(self.engine)
            names = table_names or insp.get_table_names()
            rows = []
            for name in names:
                if not insp.has_table(name):
                    continue
                for c in insp.get_columns(name):
                    rows.append(
                        {
                            "table_name": name,
                            "column_name": c["name"],
                            "data_type": str(c["type"]).lower(),
                            "is_nullable": "YES" if c.get("nullable", True) else "NO",
                        }
                    )
        except SQLAlchemyError as e:
            raise self._wrap(e) from e
        return [r for r in rows if all(_matches(r, f) for f in filters)]

    def close(self) -> None:
        self.engine.dispose()


def store_from_config(config: dict) -> Store:
    backend = (config.get("DATA_BACKEND") or "supabase").strip().lower()
    if backend == "sql":
        from app.fbms.db import create_db_engine
        from app.fbms.models import Base

        engine = create_db_engine((config.get("DATABASE_URL") or "sqlite:///fbms.db").strip())
        return SqlStore(engine, Base.metadata)
    if backend != "supabase":
        raise ValueError(f"Unknown DATA_BACKEND {backend!r}. Must be 'supabase' or 'sql'.")
    return RestStore(
        (config.get("SUPABASE_URL") or "").strip(),
        (config.get("SUPABASE_KEY") or "").strip(),
        timeout_seconds=float(config.get("STORE_TIMEOUT_SECONDS") or 30.0),
    )
