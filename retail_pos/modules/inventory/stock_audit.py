# retail_pos/modules/inventory/stock_audit.py
"""
Physical stock counts.

A count replaces the system stock with the number actually on the shelf and
leaves an audit record (stock_history) carrying the variance. The stock
write and its history record commit together.
"""
from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from ...config import AppConfig
from ...constants import COLL_PRODUCTS, COLL_STOCK_HISTORY
from ...database.repositories.inventory_repo import InventoryRepo
from ...database.store import DocumentStore, Transaction, run_in_transaction
from ...errors import ProductNotFound, StoreError, ValidationError
from ...utils.helpers import new_record_id, now_ms
from ...utils.loggers import log_event
from ...utils.validators import parse_quantity

_log = logging.getLogger(__name__)

CSV_HEADERS = ["Date", "Time", "SKU", "Product Name", "System Stock", "Physical Count", "Variance"]


@dataclass
class StockAdjustment:
    id: str
    timestamp: int
    product_id: str
    sku: str
    name: str
    old_stock: int
    new_stock: int
    processed_by: Optional[str] = None

    @property
    def variance(self) -> int:
        return self.new_stock - self.old_stock

    @classmethod
    def from_doc(cls, d: dict) -> "StockAdjustment":
        return cls(
            id=str(d["id"]),
            timestamp=int(d.get("timestamp") or 0),
            product_id=str(d.get("productId") or ""),
            sku=str(d.get("sku") or ""),
            name=str(d.get("name") or ""),
            old_stock=int(d.get("oldStock") or 0),
            new_stock=int(d.get("newStock") or 0),
            processed_by=d.get("processedBy"),
        )

    def to_doc(self) -> dict:
        doc = {
            "id": self.id,
            "timestamp": self.timestamp,
            "productId": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "oldStock": self.old_stock,
            "newStock": self.new_stock,
            "variance": self.variance,
        }
        if self.processed_by is not None:
            doc["processedBy"] = self.processed_by
        return doc


def _parse_count(value) -> int:
    try:
        n = parse_quantity(value)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if n < 0:
        raise ValidationError("Stock count cannot be negative.")
    return n


class StockAuditService:
    def __init__(self, store: DocumentStore, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        self.store = store
        self.inventory = InventoryRepo(store, cas_retries=self.config.cas_retries)

    def _record(self, txn: Transaction, product_id: str, count: int, processed_by: Optional[str], ts: int) -> StockAdjustment:
        doc = txn.get(COLL_PRODUCTS, product_id)
        if doc is None:
            raise ProductNotFound(f"Unknown product: {product_id}")
        old = self.inventory.set_stock(product_id, count, txn=txn)
        adj = StockAdjustment(
            id=new_record_id("adj-"),
            timestamp=ts,
            product_id=str(product_id),
            sku=str(doc.get("sku") or ""),
            name=str(doc.get("name") or ""),
            old_stock=old,
            new_stock=count,
            processed_by=processed_by,
        )
        txn.create(COLL_STOCK_HISTORY, adj.id, adj.to_doc())
        return adj

    def adjust_absolute_stock(self, product_id: str, new_value, processed_by: Optional[str] = None) -> StockAdjustment:
        """Set one product's stock to a counted value."""
        return self.commit_counts({product_id: new_value}, processed_by=processed_by)[0]

    def commit_counts(self, counts: Mapping[str, object], processed_by: Optional[str] = None) -> List[StockAdjustment]:
        """
        Apply a whole counting session atomically: every product is set to its
        count and gets a history record, or nothing changes.
        """
        parsed: Dict[str, int] = {str(pid): _parse_count(v) for pid, v in (counts or {}).items()}
        if not parsed:
            raise ValidationError("No counts to commit.")
        ts = now_ms()

        def work(txn: Transaction) -> List[StockAdjustment]:
            return [self._record(txn, pid, n, processed_by, ts) for pid, n in parsed.items()]

        try:
            adjustments = run_in_transaction(self.store, work, retries=self.config.cas_retries, op="stock_audit")
        except StoreError:
            _log.exception("Stock count commit failed")
            raise

        log_event(
            _log, "stock_audit", "committed", f"Committed {len(adjustments)} stock count(s)",
            {"variances": {a.product_id: a.variance for a in adjustments}, "processed_by": processed_by},
        )
        return adjustments

    def history(self, limit: Optional[int] = None) -> List[StockAdjustment]:
        """Newest first."""
        rows = [StockAdjustment.from_doc(d) for d in self.store.list(COLL_STOCK_HISTORY)]
        rows.sort(key=lambda a: (a.timestamp, a.id), reverse=True)
        return rows if limit is None else rows[:limit]

    def export_history_csv(self, path: Union[str, Path]) -> int:
        """Write the audit history to `path`. Returns the number of rows written."""
        rows = self.history()
        if not rows:
            raise ValidationError("No history available to export.")
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADERS)
            for a in rows:
                dt = datetime.fromtimestamp(a.timestamp / 1000)
                writer.writerow([
                    dt.date().isoformat(),
                    dt.time().strftime("%H:%M:%S"),
                    a.sku,
                    a.name,
                    a.old_stock,
                    a.new_stock,
                    a.variance,
                ])
        return len(rows)


def adjust_absolute_stock(
    store: DocumentStore,
    product_id: str,
    new_value,
    *,
    processed_by: Optional[str] = None,
    config: Optional[AppConfig] = None,
) -> StockAdjustment:
    """Functional entry point; see StockAuditService.adjust_absolute_stock()."""
    return StockAuditService(store, config).adjust_absolute_stock(product_id, new_value, processed_by)
