# retail_pos/database/schema.py
from pathlib import Path
import sqlite3
import sys

from ..constants import TABLE_KV_STORE

SQL = rf"""
/* ======================== KEY-VALUE DOCUMENT STORE ======================== */

/*
  One row per document. `collection` mirrors the logical collection names
  (products, categories, sales, users, settings, stock_history); `body` is the
  serialized document; `version` is the optimistic concurrency token exposed
  to callers as `_version`.
*/
CREATE TABLE IF NOT EXISTS {TABLE_KV_STORE} (
    collection  TEXT    NOT NULL,
    doc_key     TEXT    NOT NULL,
    body        TEXT    NOT NULL CHECK (json_valid(body)),
    version     INTEGER NOT NULL DEFAULT 1 CHECK (version >= 1),
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (collection, doc_key)
);

/* keep updated_at current on every body/version change */
DROP TRIGGER IF EXISTS trg_kv_store_touch;
CREATE TRIGGER trg_kv_store_touch
AFTER UPDATE OF body, version ON {TABLE_KV_STORE}
FOR EACH ROW
BEGIN
    UPDATE {TABLE_KV_STORE}
       SET updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
     WHERE collection = NEW.collection AND doc_key = NEW.doc_key;
END;

/* a version may only move forward */
DROP TRIGGER IF EXISTS trg_kv_store_version_forward;
CREATE TRIGGER trg_kv_store_version_forward
BEFORE UPDATE OF version ON {TABLE_KV_STORE}
FOR EACH ROW
WHEN NEW.version <= OLD.version
BEGIN
    SELECT RAISE(ABORT, 'kv_store.version must increase');
END;
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()
    conn.close()


if __name__ == "__main__":
    from ..config import DB_PATH

    target = sys.argv[1] if len(sys.argv) > 1 else DB_PATH
    init_schema(target)
