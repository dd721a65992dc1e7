#!/usr/bin/env python3
"""
Add the property-linking columns to ``tenants`` (idempotent).

Tries the whole SQL file through the ``exec_sql`` RPC first; if that fails,
runs the three ALTER statements one by one. Then reads
``information_schema.columns`` and logs what is there.

Usage:
  SUPABASE_URL=... SUPABASE_SERVICE_ROLE_KEY=... python scripts/add_tenant_columns.py
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fbms.store import Filter, RestStore, Store, StoreError

logger = logging.getLogger("add_tenant_columns")

SQL_FILE = ROOT / "sql" / "add_tenant_property_linking_columns.sql"
COLUMNS = ("property_id", "property_type", "building_id")
STATEMENTS = (
    "ALTER TABLE tenants ADD COLUMN IF NOT EXISTS property_id UUID;",
    "ALTER TABLE tenants ADD COLUMN IF NOT EXISTS property_type VARCHAR(20);",
    "ALTER TABLE tenants ADD COLUMN IF NOT EXISTS building_id UUID;",
)


def apply_statements(store: Store, sql_text: str) -> list[str]:
    """
    Run the migration. Returns the statements that failed (empty when the
    file or every fallback statement went through).
    """
    try:
        store.rpc("exec_sql", {"sql_query": sql_text})
        logger.info("Executed %s via exec_sql", SQL_FILE.name)
        return []
    except StoreError as e:
        logger.warning("exec_sql for the whole file failed (%s); running statements individually", e)

    failed: list[str] = []
    for stmt in STATEMENTS:
        try:
            store.rpc("exec_sql", {"sql_query": stmt})
            logger.info("OK: %s", stmt)
        except StoreError as e:
            logger.error("FAILED: %s (%s)", stmt, e)
            failed.append(stmt)
    return failed


def verify_columns(store: Store) -> dict[str, dict]:
    """Tenant linking columns found in the schema, keyed by column name."""
    rows = store.select(
        "columns",
        schema="information_schema",
        filters=[Filter("table_name", "eq", "tenants"), Filter("column_name", "in", list(COLUMNS))],
    )
    found = {r["column_name"]: r for r in rows}
    for name in COLUMNS:
        col = found.get(name)
        if col is None:
            logger.warning("Column tenants.%s is missing", name)
        else:
            logger.info(
                "Column tenants.%s: type=%s nullable=%s", name, col.get("data_type"), col.get("is_nullable")
            )
    return found


def run(store: Store, sql_path: Path = SQL_FILE) -> bool:
    """True when all three columns are present afterwards."""
    try:
        sql_text = sql_path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Could not read %s (%s); using the built-in statements", sql_path, e)
        sql_text = "\n".join(STATEMENTS)
    try:
        apply_statements(store, sql_text)
        found = verify_columns(store)
    except StoreError as e:
        logger.error("Migration check failed: %s", e)
        return False
    except Exception:
        logger.exception("Unexpected error while adding tenant columns")
        return False
    ok = all(name in found for name in COLUMNS)
    if ok:
        logger.info("Tenant property-linking columns are in place.")
    return ok


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    url = (os.environ.get("SUPABASE_URL") or "").strip()
    key = (os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        logger.error("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set.")
        return 1
    store = RestStore(url, key)
    try:
        run(store)
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
