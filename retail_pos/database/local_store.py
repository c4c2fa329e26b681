# retail_pos/database/local_store.py
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from ..constants import TABLE_KV_STORE, VERSION_FIELD
from ..errors import ConflictError, DocumentMissing, StoreError
from .store import DocumentStore, WriteOp, OP_CREATE, OP_PUT, OP_UPDATE, OP_DELETE, OP_CHECK

_log = logging.getLogger(__name__)


class SqliteDocumentStore(DocumentStore):
    """
    Local durable key-value backend.

    Key behavior:
      - Writes are synchronous and durable once the call returns (WAL).
      - A batch runs inside one IMMEDIATE transaction and is rolled back as a
        whole on any failure, so checkout/return never half-apply locally.
      - No multi-writer broadcast: this process is the only reader, and its
        own commits are echoed to subscribers.
    """

    backend = "local"

    def __init__(self, db_path: str | Path | None = None, *, conn: sqlite3.Connection | None = None):
        super().__init__()
        if conn is None:
            if db_path is None:
                raise ValueError("SqliteDocumentStore needs a db_path or an open connection")
            from . import get_connection  # local import avoids circularities
            conn = get_connection(db_path)
        # explicit BEGIN/COMMIT only
        conn.isolation_level = None
        self.conn = conn

    # ---------------------------- TX helper ----------------------------

    @contextmanager
    def _immediate_tx(self):
        """
        Start an IMMEDIATE transaction (write lock taken up front),
        commit on success, rollback on error.
        """
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield
            self.conn.execute("COMMIT")
        except BaseException:
            if self.conn.in_transaction:
                self.conn.execute("ROLLBACK")
            raise

    # ---------------------------- Reads ----------------------------

    def get(self, collection: str, doc_id: str) -> dict | None:
        try:
            row = self.conn.execute(
                f"SELECT body, version FROM {TABLE_KV_STORE} WHERE collection=? AND doc_key=?",
                (collection, str(doc_id)),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Read failed for {collection}/{doc_id}: {e}") from e
        return self._row_to_doc(row) if row else None

    def list(self, collection: str) -> list[dict]:
        try:
            rows = self.conn.execute(
                f"SELECT body, version FROM {TABLE_KV_STORE} WHERE collection=? ORDER BY doc_key",
                (collection,),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Read failed for {collection}: {e}") from e
        return [self._row_to_doc(r) for r in rows]

    # ---------------------------- Writes ----------------------------

    def _commit_ops(self, ops: list[WriteOp]) -> None:
        try:
            with self._immediate_tx():
                for op in ops:
                    self._apply(op)
        except StoreError:
            raise
        except sqlite3.Error as e:
            _log.exception("Local batch of %d op(s) failed; rolled back", len(ops))
            raise StoreError(f"Local batch commit failed: {e}") from e

    def _apply(self, op: WriteOp) -> None:
        if op.kind == OP_CREATE:
            try:
                self.conn.execute(
                    f"INSERT INTO {TABLE_KV_STORE}(collection, doc_key, body, version) VALUES (?, ?, ?, 1)",
                    (op.collection, op.doc_id, self._dumps(op.data)),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Document already exists: {op.collection}/{op.doc_id}") from e
            return

        current = self._current_version(op.collection, op.doc_id)

        if op.kind == OP_CHECK:
            if current != op.expected_version:
                raise ConflictError(
                    f"{op.collection}/{op.doc_id} changed since it was read: "
                    f"expected {op.expected_version}, found {current}"
                )
            return

        if op.expected_version is not None and current != op.expected_version:
            self._raise_mismatch(op, current)

        if op.kind == OP_PUT:
            if current is None:
                self.conn.execute(
                    f"INSERT INTO {TABLE_KV_STORE}(collection, doc_key, body, version) VALUES (?, ?, ?, 1)",
                    (op.collection, op.doc_id, self._dumps(op.data)),
                )
            else:
                self._write_body(op, op.data, current)
            return

        if current is None:
            raise DocumentMissing(f"Document not found: {op.collection}/{op.doc_id}")

        if op.kind == OP_UPDATE:
            body = self._load_body(op.collection, op.doc_id)
            body.update(op.data or {})
            self._write_body(op, body, current)
        elif op.kind == OP_DELETE:
            self.conn.execute(
                f"DELETE FROM {TABLE_KV_STORE} WHERE collection=? AND doc_key=? AND version=?",
                (op.collection, op.doc_id, current),
            )

    def _write_body(self, op: WriteOp, body: dict | None, current: int) -> None:
        cur = self.conn.execute(
            f"""
            UPDATE {TABLE_KV_STORE}
               SET body=?, version=version+1
             WHERE collection=? AND doc_key=? AND version=?
            """,
            (self._dumps(body), op.collection, op.doc_id, current),
        )
        if cur.rowcount != 1:
            self._raise_mismatch(op, self._current_version(op.collection, op.doc_id))

    def _current_version(self, collection: str, doc_id: str) -> int | None:
        row = self.conn.execute(
            f"SELECT version FROM {TABLE_KV_STORE} WHERE collection=? AND doc_key=?",
            (collection, doc_id),
        ).fetchone()
        return int(row[0]) if row else None

    def _load_body(self, collection: str, doc_id: str) -> dict:
        row = self.conn.execute(
            f"SELECT body FROM {TABLE_KV_STORE} WHERE collection=? AND doc_key=?",
            (collection, doc_id),
        ).fetchone()
        return json.loads(row[0]) if row else {}

    @staticmethod
    def _raise_mismatch(op: WriteOp, current: int | None):
        if current is None:
            raise DocumentMissing(f"Document not found: {op.collection}/{op.doc_id}")
        raise ConflictError(
            f"Version conflict on {op.collection}/{op.doc_id}: "
            f"expected {op.expected_version}, found {current}"
        )

    # ---------------------------- Utilities ----------------------------

    @staticmethod
    def _dumps(doc: dict | None) -> str:
        return json.dumps(doc or {}, ensure_ascii=False, sort_keys=True)

    @staticmethod
    def _row_to_doc(row) -> dict:
        doc = json.loads(row[0])
        doc[VERSION_FIELD] = int(row[1])
        return doc

    def close(self) -> None:
        super().close()
        try:
            self.conn.close()
        except sqlite3.Error:
            _log.warning("Closing local store connection failed", exc_info=True)
