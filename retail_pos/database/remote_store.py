# retail_pos/database/remote_store.py
from __future__ import annotations

import copy
import logging
from typing import Any

from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from ..constants import DEFAULT_MONGO_DB, VERSION_FIELD
from ..errors import ConflictError, DocumentMissing, StoreError
from ..utils.loggers import log_event
from .store import DocumentStore, Snapshot, WriteOp, OP_CREATE, OP_PUT, OP_UPDATE, OP_DELETE, OP_CHECK

_log = logging.getLogger(__name__)


class MongoDocumentStore(DocumentStore):
    """
    Remote replicated backend (MongoDB replica set / Atlas).

    Key behavior:
      - Documents live in one Mongo collection per logical collection, keyed
        by `_id` = doc id; `_version` is stored alongside the fields.
      - batch_commit() runs inside a multi-document transaction on a client
        session: every op commits or none does.
      - Write conflicts reported by the server (TransientTransactionError)
        surface as ConflictError so callers can retry like a CAS miss.
      - Subscribers are refreshed after this client's own commits and by
        poll_changes(), which drains the collections' change streams without
        blocking. A failed snapshot read falls back to the last snapshot seen,
        flagged from_cache=True.
    """

    backend = "remote"

    def __init__(
        self,
        uri: str | None = None,
        db_name: str = DEFAULT_MONGO_DB,
        *,
        client: Any = None,
        timeout_ms: int = 5000,
    ):
        super().__init__()
        if client is None:
            if not uri:
                raise ValueError("MongoDocumentStore needs a connection uri or a client")
            client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        self.client = client
        self.db = client[db_name]
        self._cache: dict[str, list[dict]] = {}
        self._streams: dict[str, Any] = {}

    # ---------------------------- Reads ----------------------------

    def get(self, collection: str, doc_id: str) -> dict | None:
        try:
            raw = self.db[collection].find_one({"_id": str(doc_id)})
        except PyMongoError as e:
            raise StoreError(f"Read failed for {collection}/{doc_id}: {e}") from e
        return self._from_mongo(raw) if raw else None

    def list(self, collection: str) -> list[dict]:
        try:
            rows = list(self.db[collection].find({}))
        except PyMongoError as e:
            raise StoreError(f"Read failed for {collection}: {e}") from e
        return [self._from_mongo(r) for r in rows]

    # ---------------------------- Writes ----------------------------

    def _commit_ops(self, ops: list[WriteOp]) -> None:
        try:
            with self.client.start_session() as session:
                with session.start_transaction():
                    for op in ops:
                        self._apply(op, session)
        except StoreError:
            raise
        except OperationFailure as e:
            if e.has_error_label("TransientTransactionError"):
                raise ConflictError(f"Remote transaction conflict: {e}") from e
            _log.exception("Remote batch of %d op(s) failed", len(ops))
            raise StoreError(f"Remote batch commit failed: {e}") from e
        except PyMongoError as e:
            log_event(
                _log, "batch_commit", "failed", "Remote batch commit failed",
                {"ops": len(ops), "error": str(e)}, level=logging.ERROR,
            )
            raise StoreError(f"Remote batch commit failed: {e}") from e

    def _apply(self, op: WriteOp, session) -> None:
        coll = self.db[op.collection]

        if op.kind == OP_CREATE:
            doc = {**copy.deepcopy(op.data or {}), "_id": op.doc_id, VERSION_FIELD: 1}
            try:
                coll.insert_one(doc, session=session)
            except DuplicateKeyError as e:
                raise ConflictError(f"Document already exists: {op.collection}/{op.doc_id}") from e
            return

        if op.kind == OP_CHECK:
            current = coll.find_one({"_id": op.doc_id}, {VERSION_FIELD: 1}, session=session)
            found = None if current is None else int(current.get(VERSION_FIELD, 0))
            if found != op.expected_version:
                raise ConflictError(
                    f"{op.collection}/{op.doc_id} changed since it was read: "
                    f"expected {op.expected_version}, found {found}"
                )
            return

        flt: dict = {"_id": op.doc_id}
        if op.expected_version is not None:
            flt[VERSION_FIELD] = op.expected_version

        if op.kind == OP_PUT:
            current = coll.find_one({"_id": op.doc_id}, {VERSION_FIELD: 1}, session=session)
            if current is None and op.expected_version is None:
                doc = {**copy.deepcopy(op.data or {}), "_id": op.doc_id, VERSION_FIELD: 1}
                try:
                    coll.insert_one(doc, session=session)
                except DuplicateKeyError as e:
                    raise ConflictError(f"Concurrent create of {op.collection}/{op.doc_id}") from e
                return
            if current is None:
                raise DocumentMissing(f"Document not found: {op.collection}/{op.doc_id}")
            next_version = int(current.get(VERSION_FIELD, 0)) + 1
            doc = {**copy.deepcopy(op.data or {}), VERSION_FIELD: next_version}
            res = coll.replace_one(flt, doc, session=session)
            self._check_matched(coll, op, res.matched_count, session)
            return

        if op.kind == OP_UPDATE:
            res = coll.update_one(
                flt,
                {"$set": copy.deepcopy(op.data or {}), "$inc": {VERSION_FIELD: 1}},
                session=session,
            )
            self._check_matched(coll, op, res.matched_count, session)
            return

        if op.kind == OP_DELETE:
            res = coll.delete_one(flt, session=session)
            self._check_matched(coll, op, res.deleted_count, session)

    @staticmethod
    def _check_matched(coll, op: WriteOp, count: int, session) -> None:
        if count:
            return
        current = coll.find_one({"_id": op.doc_id}, {VERSION_FIELD: 1}, session=session)
        if current is None:
            raise DocumentMissing(f"Document not found: {op.collection}/{op.doc_id}")
        raise ConflictError(
            f"Version conflict on {op.collection}/{op.doc_id}: "
            f"expected {op.expected_version}, found {current.get(VERSION_FIELD)}"
        )

    # ---------------------------- Snapshots ----------------------------

    def _snapshot(self, collection: str) -> Snapshot:
        try:
            docs = self.list(collection)
        except StoreError:
            cached = self._cache.get(collection, [])
            _log.warning(
                "Snapshot read for %r failed; serving %d cached doc(s)", collection, len(cached),
                exc_info=True,
            )
            return Snapshot(collection, copy.deepcopy(cached), from_cache=True)
        self._cache[collection] = copy.deepcopy(docs)
        return Snapshot(collection, docs, from_cache=False)

    def poll_changes(self) -> set[str]:
        """
        Drain pending change-stream events for every subscribed collection and
        push a fresh snapshot where anything changed. Returns the collections
        that were refreshed. Never blocks waiting for new events.
        """
        changed: set[str] = set()
        for coll in [c for c, subs in self._subs.items() if subs]:
            try:
                stream = self._streams.get(coll)
                if stream is None:
                    stream = self.db[coll].watch()
                    self._streams[coll] = stream
                while stream.try_next() is not None:
                    changed.add(coll)
            except PyMongoError:
                _log.warning("Change stream for %r failed; will reopen on next poll", coll, exc_info=True)
                self._drop_stream(coll)
        if changed:
            self._publish(changed)
        return changed

    def _drop_stream(self, coll: str) -> None:
        stream = self._streams.pop(coll, None)
        if stream is not None:
            try:
                stream.close()
            except PyMongoError:
                _log.debug("Closing change stream for %r failed", coll, exc_info=True)

    # ---------------------------- Utilities ----------------------------

    @staticmethod
    def _from_mongo(raw: dict) -> dict:
        doc = dict(raw)
        doc.pop("_id", None)
        doc[VERSION_FIELD] = int(doc.get(VERSION_FIELD) or 1)
        return doc

    def close(self) -> None:
        for coll in list(self._streams):
            self._drop_stream(coll)
        super().close()
        self.client.close()
