# retail_pos/database/repositories/inventory_repo.py
"""
Authoritative on-hand quantities (products.stock).

Only three callers may move stock: checkout (negative delta), returns
(positive delta) and the stock audit (absolute value). Every write is a
compare-and-swap on the product's `_version`, so two clients decrementing
the same product cannot silently overwrite each other.

Pass `txn=` to fold the change into a larger unit of work (checkout/return);
without it the repo opens its own transaction and retries on conflict.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from ...constants import COLL_PRODUCTS
from ...errors import InsufficientStockError, ProductNotFound
from ..store import DocumentStore, Transaction, run_in_transaction


class InventoryRepo:
    def __init__(self, store: DocumentStore, *, cas_retries: int = 3, allow_negative: bool = False):
        self.store = store
        self.cas_retries = cas_retries
        self.allow_negative = allow_negative

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_stock(self, product_id: str) -> int:
        doc = self.store.get(COLL_PRODUCTS, product_id)
        if doc is None:
            raise ProductNotFound(f"Unknown product: {product_id}")
        return int(doc.get("stock") or 0)

    def stock_levels(self) -> Dict[str, int]:
        """{product_id: stock} for every product."""
        return {str(d["id"]): int(d.get("stock") or 0) for d in self.store.list(COLL_PRODUCTS)}

    def low_stock(self, threshold: int = 5) -> List[Dict]:
        """
        Products at or below `threshold`, lowest first.
        Rows: id, sku, name, stock.
        """
        rows = [
            {"id": str(d["id"]), "sku": d.get("sku"), "name": d.get("name"), "stock": int(d.get("stock") or 0)}
            for d in self.store.list(COLL_PRODUCTS)
            if int(d.get("stock") or 0) <= threshold
        ]
        return sorted(rows, key=lambda r: (r["stock"], str(r["name"] or "")))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def adjust_stock(
        self,
        product_id: str,
        delta: int,
        *,
        txn: Optional[Transaction] = None,
        allow_negative: Optional[bool] = None,
    ) -> int:
        """
        Apply a relative change and return the new stock.

        Raises ProductNotFound for unknown ids and InsufficientStockError when
        a decrement would take stock below zero (unless negative stock is
        allowed).
        """
        delta = int(delta)
        allow = self.allow_negative if allow_negative is None else allow_negative

        def work(t: Transaction) -> int:
            doc = t.get(COLL_PRODUCTS, product_id)
            if doc is None:
                raise ProductNotFound(f"Unknown product: {product_id}")
            before = int(doc.get("stock") or 0)
            after = before + delta
            if delta < 0 and after < 0 and not allow:
                raise InsufficientStockError(str(product_id), before, -delta)
            t.update(COLL_PRODUCTS, product_id, {"stock": after})
            return after

        if txn is not None:
            return work(txn)
        return run_in_transaction(self.store, work, retries=self.cas_retries, op="adjust_stock")

    def set_stock(self, product_id: str, value: int, *, txn: Optional[Transaction] = None) -> int:
        """
        Absolute correction (stock audit). Returns the previous stock.
        """
        value = int(value)
        if value < 0:
            raise ValueError("Stock count cannot be negative.")

        def work(t: Transaction) -> int:
            doc = t.get(COLL_PRODUCTS, product_id)
            if doc is None:
                raise ProductNotFound(f"Unknown product: {product_id}")
            before = int(doc.get("stock") or 0)
            t.update(COLL_PRODUCTS, product_id, {"stock": value})
            return before

        if txn is not None:
            return work(txn)
        return run_in_transaction(self.store, work, retries=self.cas_retries, op="set_stock")
