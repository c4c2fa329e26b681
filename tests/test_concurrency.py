"""
Two clients on one SQLite file: a stale read inside a checkout or return
must end in a retry against fresh data, never in a lost update or oversell.
"""
from __future__ import annotations

import pytest

from retail_pos.constants import COLL_PRODUCTS, COLL_SALES, STATUS_PARTIAL, STATUS_REFUNDED
from retail_pos.database.local_store import SqliteDocumentStore
from retail_pos.database.repositories import SalesRepo
from retail_pos.errors import InsufficientStockError, OverReturnError
from retail_pos.modules.sales import CheckoutService, ReturnProcessor


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture()
def other(tmp_path, catalog):
    """Second client on the same database file as `catalog`."""
    s = SqliteDocumentStore(tmp_path / "pos.db")
    try:
        yield s
    finally:
        s.close()


def run_after_first_read(monkeypatch, store, collection, doc_id, concurrent):
    """
    Run `concurrent` once, right after `store` first reads the document,
    and hand the caller the (now stale) document it read.
    """
    real_get = store.get
    fired = []

    def get(coll, did):
        doc = real_get(coll, did)
        if not fired and (coll, str(did)) == (collection, str(doc_id)):
            fired.append((coll, did))
            concurrent()
        return doc

    monkeypatch.setattr(store, "get", get)
    return fired


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

def test_clients_share_one_ledger(catalog, other, config, make_line, stock, p2):
    CheckoutService(catalog, config).checkout([make_line(p2, 5)], "CASH", 50.0, 0.0, 0.0, 50.0)
    with pytest.raises(InsufficientStockError):
        CheckoutService(other, config).checkout([make_line(p2, 1)], "CASH", 10.0, 0.0, 0.0, 10.0)
    assert stock(other, "P2") == 0
    assert len(SalesRepo(other).list_sales()) == 1


def test_competing_checkout_does_not_oversell(catalog, other, config, make_line, stock, p2, monkeypatch):
    def rival():
        CheckoutService(other, config).checkout([make_line(p2, 5)], "CASH", 50.0, 0.0, 0.0, 50.0)

    fired = run_after_first_read(monkeypatch, catalog, COLL_PRODUCTS, "P2", rival)
    with pytest.raises(InsufficientStockError) as ei:
        CheckoutService(catalog, config).checkout([make_line(p2, 1)], "CASH", 10.0, 0.0, 0.0, 10.0)

    assert fired
    assert ei.value.available == 0
    assert stock(other, "P2") == 0
    sales = SalesRepo(other).list_sales()
    assert len(sales) == 1 and sales[0].total == pytest.approx(50.0)


def test_competing_checkouts_both_land_when_stock_allows(catalog, other, config, make_line, stock, p1, monkeypatch):
    def rival():
        CheckoutService(other, config).checkout([make_line(p1, 3)], "CASH", 55.5, 0.0, 0.0, 55.5)

    fired = run_after_first_read(monkeypatch, catalog, COLL_PRODUCTS, "P1", rival)
    CheckoutService(catalog, config).checkout([make_line(p1, 2)], "CASH", 37.0, 0.0, 0.0, 37.0)

    assert fired
    assert stock(other, "P1") == 5
    assert len(SalesRepo(other).list_sales()) == 2


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------

@pytest.fixture()
def sale(catalog, config, make_line, p1):
    """Two units of P1 at 18.50 (stock 10 -> 8)."""
    return CheckoutService(catalog, config).checkout([make_line(p1, 2)], "CASH", 37.0, 0.0, 0.0, 37.0)


def test_concurrent_returns_merge(catalog, other, config, sale, stock, monkeypatch):
    def rival():
        ReturnProcessor(other, config).process_return(sale.id, {"P1": 1})

    fired = run_after_first_read(monkeypatch, catalog, COLL_SALES, sale.id, rival)
    summary = ReturnProcessor(catalog, config).process_return(sale.id, {"P1": 1})

    assert fired
    assert summary.total == pytest.approx(18.50)
    assert summary.status == STATUS_REFUNDED
    after = SalesRepo(other).require(sale.id)
    assert after.returned_items == {"P1": 2}
    assert after.status == STATUS_REFUNDED
    assert stock(other, "P1") == 10


def test_concurrent_return_rechecks_remaining_quantity(catalog, other, config, sale, stock, monkeypatch):
    def rival():
        ReturnProcessor(other, config).process_return(sale.id, {"P1": 1})

    run_after_first_read(monkeypatch, catalog, COLL_SALES, sale.id, rival)
    with pytest.raises(OverReturnError):
        ReturnProcessor(catalog, config).process_return(sale.id, {"P1": 2})

    after = SalesRepo(other).require(sale.id)
    assert after.returned_items == {"P1": 1}
    assert after.status == STATUS_PARTIAL
    assert stock(other, "P1") == 9


def test_return_restocks_product_recreated_meanwhile(catalog, other, config, sale, stock, p1, monkeypatch):
    catalog.delete(COLL_PRODUCTS, "P1")

    def rival():
        other.put(COLL_PRODUCTS, "P1", {**p1, "stock": 0})

    fired = run_after_first_read(monkeypatch, catalog, COLL_PRODUCTS, "P1", rival)
    summary = ReturnProcessor(catalog, config).process_return(sale.id, {"P1": 1})

    assert fired
    assert summary.total == pytest.approx(18.50)
    assert stock(other, "P1") == 1
    assert SalesRepo(other).require(sale.id).returned_items == {"P1": 1}
