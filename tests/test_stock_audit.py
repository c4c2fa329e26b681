"""Physical stock counts: absolute stock set plus an audit record, atomically."""
from __future__ import annotations

import csv

import pytest

from retail_pos.constants import COLL_STOCK_HISTORY
from retail_pos.errors import ProductNotFound, ValidationError
from retail_pos.modules.inventory import StockAuditService, adjust_absolute_stock


def test_adjust_records_variance(catalog, config, stock):
    adj = StockAuditService(catalog, config).adjust_absolute_stock("P1", 7, processed_by="demo_admin")
    assert stock(catalog, "P1") == 7
    assert (adj.old_stock, adj.new_stock, adj.variance) == (10, 7, -3)
    doc = catalog.get(COLL_STOCK_HISTORY, adj.id)
    assert doc["sku"] == "TSH-BLK-M"
    assert doc["variance"] == -3
    assert doc["processedBy"] == "demo_admin"


def test_functional_entry_point(catalog, config, stock):
    adjust_absolute_stock(catalog, "P2", "12", config=config)
    assert stock(catalog, "P2") == 12


@pytest.mark.parametrize("value", [-1, 2.5, "lots", float("inf"), "1e400"])
def test_invalid_counts_rejected(catalog, config, stock, value):
    with pytest.raises(ValidationError):
        StockAuditService(catalog, config).adjust_absolute_stock("P1", value)
    assert stock(catalog, "P1") == 10
    assert catalog.list(COLL_STOCK_HISTORY) == []


def test_session_commit_is_atomic(catalog, config, stock):
    svc = StockAuditService(catalog, config)
    with pytest.raises(ProductNotFound):
        svc.commit_counts({"P1": 3, "GHOST": 2})
    assert stock(catalog, "P1") == 10
    assert svc.history() == []

    adjustments = svc.commit_counts({"P1": 3, "P2": 5})
    assert [a.variance for a in adjustments] == [-7, 0]
    assert len(svc.history()) == 2
    assert len(svc.history(limit=1)) == 1


def test_empty_session_rejected(catalog, config):
    with pytest.raises(ValidationError):
        StockAuditService(catalog, config).commit_counts({})


def test_export_history_csv(catalog, config, tmp_path):
    svc = StockAuditService(catalog, config)
    with pytest.raises(ValidationError):
        svc.export_history_csv(tmp_path / "empty.csv")

    svc.adjust_absolute_stock("P1", 11)
    out = tmp_path / "audit.csv"
    assert svc.export_history_csv(out) == 1
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0][2:] == ["SKU", "Product Name", "System Stock", "Physical Count", "Variance"]
    assert rows[1][2:] == ["TSH-BLK-M", "Tee Black", "10", "11", "1"]
