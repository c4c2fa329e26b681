# retail_pos/database/store.py
"""
Persistence adapter contract shared by the local (SQLite) and remote
(MongoDB) backends.

Conventions:
  - Documents are plain dicts addressed by (collection, doc_id).
  - Every document read from a store carries `_version` (int >= 1). Each
    successful write bumps it. Writes may pass `expected_version` to make
    the write conditional (compare-and-swap).
  - batch_commit() is all-or-nothing in BOTH backends.
  - Subscribers receive a full Snapshot of the collection on subscribe and
    after every committed write that touched the collection.
"""
from __future__ import annotations

import abc
import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from ..constants import VERSION_FIELD
from ..errors import ConflictError
from ..utils.loggers import log_event

_log = logging.getLogger(__name__)

__all__ = [
    "WriteOp",
    "Snapshot",
    "Subscription",
    "Transaction",
    "DocumentStore",
    "run_in_transaction",
]

OP_CREATE = "create"
OP_PUT = "put"
OP_UPDATE = "update"
OP_DELETE = "delete"
OP_CHECK = "check"
OP_KINDS = (OP_CREATE, OP_PUT, OP_UPDATE, OP_DELETE, OP_CHECK)


@dataclass(frozen=True)
class WriteOp:
    """
    One pending write.

    kind:
      - 'create'  insert; fails with ConflictError if the id exists
      - 'put'     create-or-replace the whole document
      - 'update'  shallow merge of top-level fields; document must exist
      - 'delete'  remove the document
      - 'check'   write nothing; the document must still be at
                  expected_version (None: must still be absent)
    """
    kind: str
    collection: str
    doc_id: str
    data: Optional[dict] = None
    expected_version: Optional[int] = None

    def __post_init__(self):
        if self.kind not in OP_KINDS:
            raise ValueError(f"Unknown write kind: {self.kind!r}")
        if self.kind not in (OP_DELETE, OP_CHECK) and self.data is None:
            raise ValueError(f"{self.kind} requires data")

    @classmethod
    def create(cls, collection: str, doc_id: str, doc: dict) -> "WriteOp":
        return cls(OP_CREATE, collection, str(doc_id), clean_doc(doc))

    @classmethod
    def put(cls, collection: str, doc_id: str, doc: dict, expected_version: int | None = None) -> "WriteOp":
        return cls(OP_PUT, collection, str(doc_id), clean_doc(doc), expected_version)

    @classmethod
    def update(cls, collection: str, doc_id: str, patch: dict, expected_version: int | None = None) -> "WriteOp":
        return cls(OP_UPDATE, collection, str(doc_id), clean_doc(patch), expected_version)

    @classmethod
    def delete(cls, collection: str, doc_id: str, expected_version: int | None = None) -> "WriteOp":
        return cls(OP_DELETE, collection, str(doc_id), None, expected_version)

    @classmethod
    def check(cls, collection: str, doc_id: str, expected_version: int | None) -> "WriteOp":
        return cls(OP_CHECK, collection, str(doc_id), None, expected_version)


def clean_doc(doc: dict) -> dict:
    """Deep copy without store-maintained keys."""
    out = copy.deepcopy(dict(doc))
    out.pop(VERSION_FIELD, None)
    out.pop("_id", None)
    return out


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time view of a collection delivered to subscribers."""
    collection: str
    docs: list[dict] = field(default_factory=list)
    from_cache: bool = False

    @property
    def empty(self) -> bool:
        return not self.docs

    @property
    def is_live(self) -> bool:
        return not self.from_cache


OnChange = Callable[[Snapshot], None]


class Subscription:
    def __init__(self, store: "DocumentStore", collection: str, callback: OnChange):
        self._store = store
        self.collection = collection
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._remove_subscription(self)

    __call__ = unsubscribe


class Transaction:
    """
    Unit of work: reads go straight to the store (remembering the version
    seen), writes are buffered and committed together by the store.

    Writes to the same document within one transaction are folded into a
    single op, so a document read once and patched twice is still checked
    against the version originally read. Documents that were only read are
    committed as check ops, so a concurrent change to anything the unit of
    work looked at fails the whole batch.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: dict[tuple[str, str], WriteOp] = {}
        self._seen: dict[tuple[str, str], Optional[int]] = {}
        self.committed = False

    # ---- reads ----
    def get(self, collection: str, doc_id: str) -> dict | None:
        key = (collection, str(doc_id))
        pending = self._ops.get(key)
        if pending is not None:
            return self._pending_view(key, pending)
        doc = self._store.get(collection, doc_id)
        # the first version seen is the one the unit of work is checked against
        self._seen.setdefault(key, None if doc is None else int(doc[VERSION_FIELD]))
        return doc

    def seen_version(self, collection: str, doc_id: str) -> Optional[int]:
        return self._seen.get((collection, str(doc_id)))

    def _pending_view(self, key, op: WriteOp) -> dict | None:
        if op.kind == OP_DELETE:
            return None
        if op.kind == OP_UPDATE:
            base = self._store.get(*key) or {}
            merged = {**base, **copy.deepcopy(op.data or {})}
            return merged
        view = copy.deepcopy(op.data or {})
        if self._seen.get(key) is not None:
            view[VERSION_FIELD] = self._seen[key]
        return view

    # ---- writes ----
    def create(self, collection: str, doc_id: str, doc: dict) -> None:
        self._add(WriteOp.create(collection, doc_id, doc))

    def put(self, collection: str, doc_id: str, doc: dict) -> None:
        self._add(WriteOp.put(collection, doc_id, doc, self.seen_version(collection, doc_id)))

    def update(self, collection: str, doc_id: str, patch: dict, expected_version: int | None = None) -> None:
        if expected_version is None:
            expected_version = self.seen_version(collection, doc_id)
        self._add(WriteOp.update(collection, doc_id, patch, expected_version))

    def delete(self, collection: str, doc_id: str) -> None:
        self._add(WriteOp.delete(collection, doc_id, self.seen_version(collection, doc_id)))

    def _add(self, op: WriteOp) -> None:
        key = (op.collection, op.doc_id)
        prev = self._ops.get(key)
        if prev is None:
            self._ops[key] = op
            return
        if op.kind == OP_UPDATE and prev.kind in (OP_CREATE, OP_PUT, OP_UPDATE):
            merged = {**(prev.data or {}), **(op.data or {})}
            self._ops[key] = WriteOp(prev.kind, prev.collection, prev.doc_id, merged, prev.expected_version)
        elif op.kind == OP_DELETE:
            self._ops[key] = WriteOp(OP_DELETE, op.collection, op.doc_id, None, prev.expected_version)
        else:
            self._ops[key] = WriteOp(op.kind, op.collection, op.doc_id, op.data, prev.expected_version)

    @property
    def ops(self) -> list[WriteOp]:
        """Buffered writes plus a version check for every document only read."""
        checks = [
            WriteOp.check(coll, doc_id, version)
            for (coll, doc_id), version in self._seen.items()
            if (coll, doc_id) not in self._ops
        ]
        return list(self._ops.values()) + checks

    def __len__(self) -> int:
        return len(self._ops)


class DocumentStore(abc.ABC):
    """
    Capability set: get / list / create / put / update / delete /
    batch_commit / transaction / subscribe.
    """

    backend: str = "abstract"

    def __init__(self):
        self._subs: dict[str, list[Subscription]] = {}

    # ---- reads (backend) ----
    @abc.abstractmethod
    def get(self, collection: str, doc_id: str) -> dict | None:
        """Return the document (with `_version`) or None."""

    @abc.abstractmethod
    def list(self, collection: str) -> list[dict]:
        """Return every document in the collection (with `_version`)."""

    # ---- writes (backend) ----
    @abc.abstractmethod
    def _commit_ops(self, ops: list[WriteOp]) -> None:
        """Apply ops atomically or raise without applying any of them."""

    def close(self) -> None:
        self._subs.clear()

    # ---- writes (shared) ----
    def batch_commit(self, ops: Iterable[WriteOp]) -> None:
        ops = list(ops)
        written = {op.collection for op in ops if op.kind != OP_CHECK}
        if not written:
            return
        self._commit_ops(ops)
        self._publish(written)

    def create(self, collection: str, doc_id: str, doc: dict) -> None:
        self.batch_commit([WriteOp.create(collection, doc_id, doc)])

    def put(self, collection: str, doc_id: str, doc: dict, expected_version: int | None = None) -> None:
        self.batch_commit([WriteOp.put(collection, doc_id, doc, expected_version)])

    def update(self, collection: str, doc_id: str, patch: dict, expected_version: int | None = None) -> None:
        self.batch_commit([WriteOp.update(collection, doc_id, patch, expected_version)])

    def delete(self, collection: str, doc_id: str, expected_version: int | None = None) -> None:
        self.batch_commit([WriteOp.delete(collection, doc_id, expected_version)])

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        with store.transaction() as txn:
            doc = txn.get("products", pid)
            txn.update("products", pid, {"stock": doc["stock"] - 1})

        Commits on normal exit; nothing is written if the block raises.
        """
        txn = Transaction(self)
        yield txn
        self.batch_commit(txn.ops)
        txn.committed = True

    # ---- subscriptions ----
    def subscribe(self, collection: str, on_change: OnChange) -> Subscription:
        """
        Register `on_change` and deliver the current snapshot immediately.
        Returns a Subscription; call .unsubscribe() (or the object) to stop.
        """
        sub = Subscription(self, collection, on_change)
        self._subs.setdefault(collection, []).append(sub)
        self._deliver(sub, self._snapshot(collection))
        return sub

    def _remove_subscription(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.collection, [])
        if sub in subs:
            subs.remove(sub)

    def _snapshot(self, collection: str) -> Snapshot:
        return Snapshot(collection, self.list(collection), from_cache=False)

    def _publish(self, collections: Iterable[str]) -> None:
        for coll in sorted(collections):
            subs = [s for s in self._subs.get(coll, []) if s.active]
            if not subs:
                continue
            snap = self._snapshot(coll)
            for sub in subs:
                self._deliver(sub, snap)

    @staticmethod
    def _deliver(sub: Subscription, snap: Snapshot) -> None:
        # Subscriber failures must not undo or hide an already committed write.
        try:
            sub.callback(Snapshot(snap.collection, copy.deepcopy(snap.docs), snap.from_cache))
        except Exception:
            _log.exception("Subscriber for %r failed", sub.collection)


def run_in_transaction(store: DocumentStore, work: Callable[[Transaction], object], *, retries: int = 3, op: str = "transaction"):
    """
    Run `work(txn)` in a fresh transaction and commit it. On ConflictError the
    whole unit is re-run against fresh reads, at most `retries` more times.
    Any other exception propagates untouched and nothing is written.
    """
    attempt = 0
    while True:
        try:
            with store.transaction() as txn:
                result = work(txn)
            return result
        except ConflictError as e:
            if attempt >= retries:
                log_event(
                    _log, op, "gave_up", "Version conflict persisted; giving up",
                    {"attempts": attempt + 1, "error": str(e)}, level=logging.ERROR,
                )
                raise
            attempt += 1
            log_event(
                _log, op, "conflict", "Version conflict; retrying",
                {"attempt": attempt, "error": str(e)}, level=logging.WARNING,
            )
