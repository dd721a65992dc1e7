from __future__ import annotations

import logging
import os

from flask import Flask, current_app
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from app.fbms.store import SqlStore, Store, store_from_config

logger = logging.getLogger(__name__)


def create_db_engine(db_url: str, *, debug_checkout: bool = False) -> Engine:
    is_postgres = db_url.startswith("postgres")
    engine_kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if is_postgres:
        engine_kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    engine = create_engine(db_url, **engine_kwargs)
    if debug_checkout:
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            logger.debug("DB connection checkout from pool")
    return engine


def init_store(app: Flask) -> Store:
    """
    Build the configured data store and keep it on the app for the process lifetime.
    """
    store = store_from_config(app.config)
    app.extensions["fbms_store"] = store
    if isinstance(store, SqlStore):
        app.extensions["sqlalchemy_engine"] = store.engine
        _dispose_engine_on_fork(app, store.engine)
    app.logger.info("Data store ready (backend=%s)", app.config.get("DATA_BACKEND"))
    return store


def _dispose_engine_on_fork(app: Flask, engine: Engine) -> None:
    if hasattr(os, "register_at_fork"):
        def _after_fork_child():
            engine.dispose(close=False)
            app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)


def get_store(app: Flask | None = None) -> Store:
    """Store for the current app. Use inside request handlers."""
    if app is None:
        app = current_app
    return app.extensions["fbms_store"]
