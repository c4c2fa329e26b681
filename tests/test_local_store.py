"""
Local (SQLite) document store: versioning, compare-and-swap, all-or-nothing
batches, transactions and subscriber snapshots.
"""
from __future__ import annotations

import pytest

from retail_pos.constants import COLL_PRODUCTS, COLL_SALES, VERSION_FIELD
from retail_pos.database import get_connection
from retail_pos.database.local_store import SqliteDocumentStore
from retail_pos.database.store import WriteOp, run_in_transaction
from retail_pos.database.versioning import get_current_version
from retail_pos.constants import SCHEMA_VERSION
from retail_pos.errors import ConflictError, DocumentMissing, ValidationError


# ---------------------------------------------------------------------------
# Basic CRUD and versions
# ---------------------------------------------------------------------------

def test_create_get_list_and_version(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 1})
    doc = store.get(COLL_PRODUCTS, "A")
    assert doc == {"id": "A", "stock": 1, VERSION_FIELD: 1}
    assert [d["id"] for d in store.list(COLL_PRODUCTS)] == ["A"]
    assert store.get(COLL_PRODUCTS, "missing") is None


def test_update_bumps_version_and_merges(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 1, "name": "x"})
    store.update(COLL_PRODUCTS, "A", {"stock": 4})
    doc = store.get(COLL_PRODUCTS, "A")
    assert doc["stock"] == 4
    assert doc["name"] == "x"
    assert doc[VERSION_FIELD] == 2


def test_version_field_in_payload_is_ignored(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", VERSION_FIELD: 42})
    assert store.get(COLL_PRODUCTS, "A")[VERSION_FIELD] == 1


def test_duplicate_create_is_conflict(store):
    store.create(COLL_SALES, "S1", {"id": "S1"})
    with pytest.raises(ConflictError):
        store.create(COLL_SALES, "S1", {"id": "S1", "total": 99})
    assert "total" not in store.get(COLL_SALES, "S1")


def test_stale_expected_version_is_rejected(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    store.update(COLL_PRODUCTS, "A", {"stock": 4}, expected_version=1)
    with pytest.raises(ConflictError):
        store.update(COLL_PRODUCTS, "A", {"stock": 3}, expected_version=1)
    assert store.get(COLL_PRODUCTS, "A")["stock"] == 4


def test_update_missing_document(store):
    with pytest.raises(DocumentMissing):
        store.update(COLL_PRODUCTS, "nope", {"stock": 1})


def test_put_creates_then_replaces(store):
    store.put(COLL_PRODUCTS, "A", {"id": "A", "stock": 1, "name": "old"})
    store.put(COLL_PRODUCTS, "A", {"id": "A", "stock": 2})
    doc = store.get(COLL_PRODUCTS, "A")
    assert doc == {"id": "A", "stock": 2, VERSION_FIELD: 2}


def test_delete(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A"})
    store.delete(COLL_PRODUCTS, "A")
    assert store.get(COLL_PRODUCTS, "A") is None


def test_connection_is_stamped_with_schema_version(tmp_path):
    con = get_connection(tmp_path / "x.db")
    try:
        assert get_current_version(con) == SCHEMA_VERSION
    finally:
        con.close()


# ---------------------------------------------------------------------------
# Atomic batches and transactions
# ---------------------------------------------------------------------------

def test_batch_is_all_or_nothing(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    store.create(COLL_SALES, "S1", {"id": "S1"})
    ops = [
        WriteOp.update(COLL_PRODUCTS, "A", {"stock": 0}),
        WriteOp.create(COLL_SALES, "S1", {"id": "S1"}),  # collides
    ]
    with pytest.raises(ConflictError):
        store.batch_commit(ops)
    doc = store.get(COLL_PRODUCTS, "A")
    assert doc["stock"] == 5
    assert doc[VERSION_FIELD] == 1


def test_transaction_block_error_writes_nothing(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    with pytest.raises(ValidationError):
        with store.transaction() as txn:
            txn.update(COLL_PRODUCTS, "A", {"stock": 1})
            raise ValidationError("abort")
    assert store.get(COLL_PRODUCTS, "A")["stock"] == 5


def test_transaction_checks_versions_read(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    with pytest.raises(ConflictError):
        with store.transaction() as txn:
            doc = txn.get(COLL_PRODUCTS, "A")
            store.update(COLL_PRODUCTS, "A", {"stock": 2})  # concurrent writer
            txn.update(COLL_PRODUCTS, "A", {"stock": doc["stock"] - 1})
    assert store.get(COLL_PRODUCTS, "A")["stock"] == 2


def test_transaction_checks_documents_only_read(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    store.create(COLL_PRODUCTS, "B", {"id": "B", "stock": 1})
    with pytest.raises(ConflictError):
        with store.transaction() as txn:
            a = txn.get(COLL_PRODUCTS, "A")
            store.update(COLL_PRODUCTS, "A", {"stock": 0})  # concurrent writer
            txn.update(COLL_PRODUCTS, "B", {"stock": a["stock"]})
    assert store.get(COLL_PRODUCTS, "B")["stock"] == 1


def test_transaction_checks_documents_read_as_missing(store):
    store.create(COLL_PRODUCTS, "B", {"id": "B", "stock": 1})
    with pytest.raises(ConflictError):
        with store.transaction() as txn:
            assert txn.get(COLL_PRODUCTS, "A") is None
            store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 3})
            txn.update(COLL_PRODUCTS, "B", {"stock": 2})
    assert store.get(COLL_PRODUCTS, "B")["stock"] == 1


def test_read_only_transaction_writes_nothing(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    seen = []
    store.subscribe(COLL_PRODUCTS, seen.append)
    with store.transaction() as txn:
        txn.get(COLL_PRODUCTS, "A")
        assert [op.kind for op in txn.ops] == ["check"]
    assert txn.committed
    assert len(seen) == 1
    assert store.get(COLL_PRODUCTS, "A")[VERSION_FIELD] == 1


def test_transaction_folds_repeated_writes(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    with store.transaction() as txn:
        doc = txn.get(COLL_PRODUCTS, "A")
        txn.update(COLL_PRODUCTS, "A", {"stock": doc["stock"] - 1})
        doc = txn.get(COLL_PRODUCTS, "A")
        txn.update(COLL_PRODUCTS, "A", {"stock": doc["stock"] - 1})
        assert len(txn) == 1
    doc = store.get(COLL_PRODUCTS, "A")
    assert doc["stock"] == 3
    assert doc[VERSION_FIELD] == 2


def test_run_in_transaction_retries_after_conflict(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})
    attempts = []

    def work(txn):
        doc = txn.get(COLL_PRODUCTS, "A")
        if not attempts:
            store.update(COLL_PRODUCTS, "A", {"stock": 99})
        attempts.append(1)
        txn.update(COLL_PRODUCTS, "A", {"stock": doc["stock"] + 1})
        return doc["stock"] + 1

    assert run_in_transaction(store, work, retries=2) == 100
    assert len(attempts) == 2
    assert store.get(COLL_PRODUCTS, "A")["stock"] == 100


def test_run_in_transaction_gives_up(store):
    store.create(COLL_PRODUCTS, "A", {"id": "A", "stock": 5})

    def always_stale(txn):
        doc = txn.get(COLL_PRODUCTS, "A")
        store.update(COLL_PRODUCTS, "A", {"stock": doc["stock"] + 10})
        txn.update(COLL_PRODUCTS, "A", {"stock": 0})

    with pytest.raises(ConflictError):
        run_in_transaction(store, always_stale, retries=1)
    assert store.get(COLL_PRODUCTS, "A")["stock"] == 25


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

def test_subscribe_delivers_initial_and_echo(store):
    seen = []
    sub = store.subscribe(COLL_PRODUCTS, seen.append)
    assert len(seen) == 1 and seen[0].empty and seen[0].is_live

    store.create(COLL_PRODUCTS, "A", {"id": "A"})
    assert len(seen) == 2
    assert [d["id"] for d in seen[1].docs] == ["A"]

    store.create(COLL_SALES, "S1", {"id": "S1"})  # other collection
    assert len(seen) == 2

    sub.unsubscribe()
    store.create(COLL_PRODUCTS, "B", {"id": "B"})
    assert len(seen) == 2


def test_failing_subscriber_does_not_break_commit(store):
    def boom(snap):
        if not snap.empty:
            raise RuntimeError("subscriber bug")

    store.subscribe(COLL_PRODUCTS, boom)
    store.create(COLL_PRODUCTS, "A", {"id": "A"})
    assert store.get(COLL_PRODUCTS, "A") is not None


def test_store_requires_path_or_connection():
    with pytest.raises(ValueError):
        SqliteDocumentStore()
