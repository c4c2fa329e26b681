# retail_pos/database/__init__.py
from __future__ import annotations

import logging
from pathlib import Path
import sqlite3

from ..config import AppConfig, DB_PATH
from .schema import apply_schema
from .versioning import ensure_version
from .store import DocumentStore, Snapshot, Subscription, Transaction, WriteOp

_log = logging.getLogger(__name__)


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode
      - autocommit (callers issue BEGIN/COMMIT explicitly)
      - row_factory = sqlite3.Row
    Ensures schema & version stamp are applied idempotently.
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA busy_timeout = 5000;")

    apply_schema(conn)
    ensure_version(conn)
    return conn


def open_store(config: AppConfig) -> DocumentStore:
    """
    Pick the backend once at startup: remote when a Mongo URI is configured,
    otherwise the local SQLite store. The returned store is passed explicitly
    to repositories and services.
    """
    if config.is_remote:
        from .remote_store import MongoDocumentStore

        _log.info("Using remote document store (db=%s)", config.mongo_db)
        return MongoDocumentStore(
            config.mongo_uri,
            config.mongo_db,
            timeout_ms=config.mongo_timeout_ms,
        )

    from .local_store import SqliteDocumentStore

    _log.info("Using local document store at %s", config.db_path)
    return SqliteDocumentStore(config.db_path)


__all__ = [
    "get_connection",
    "open_store",
    "DocumentStore",
    "Snapshot",
    "Subscription",
    "Transaction",
    "WriteOp",
]
