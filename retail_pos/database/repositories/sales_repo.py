# retail_pos/database/repositories/sales_repo.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...constants import COLL_SALES, STATUS_COMPLETED, VERSION_FIELD
from ...errors import SaleNotFound
from ..store import DocumentStore, Transaction
from .products_repo import Product


@dataclass
class CartItem(Product):
    """
    A product snapshot plus the quantity being sold. Fields the catalog
    carries beyond the core ones (size, color, ...) are kept in `extra` so
    the snapshot stored on the sale is complete.
    """
    quantity: int = 1
    extra: dict = field(default_factory=dict)

    _CORE_KEYS = frozenset(
        {"id", "sku", "name", "costPrice", "sellPrice", "stock", "category", "image", "tags", "quantity", VERSION_FIELD, "_id"}
    )

    @classmethod
    def from_doc(cls, d: dict) -> "CartItem":
        base = Product.from_doc(d)
        return cls(
            id=base.id,
            sku=base.sku,
            name=base.name,
            cost_price=base.cost_price,
            sell_price=base.sell_price,
            stock=base.stock,
            category=base.category,
            image=base.image,
            tags=base.tags,
            quantity=int(d.get("quantity") or 0),
            extra={k: copy.deepcopy(v) for k, v in d.items() if k not in cls._CORE_KEYS},
        )

    def to_doc(self) -> dict:
        doc = copy.deepcopy(self.extra)
        doc.update(super().to_doc())
        doc["quantity"] = self.quantity
        return doc


@dataclass
class Sale:
    id: str
    timestamp: int
    items: list[CartItem]
    sub_total: float
    discount: float
    tax: float
    total: float
    payment_method: str
    status: str = STATUS_COMPLETED
    returned_items: dict[str, int] = field(default_factory=dict)
    discount_type: Optional[str] = None
    tax_rate: Optional[float] = None
    processed_by: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    version: Optional[int] = None

    _OPTIONAL = {
        "discount_type": "discountType",
        "tax_rate": "taxRate",
        "processed_by": "processedBy",
        "customer_name": "customerName",
        "customer_phone": "customerPhone",
    }

    @classmethod
    def from_doc(cls, d: dict) -> "Sale":
        s = cls(
            id=str(d["id"]),
            timestamp=int(d.get("timestamp") or 0),
            items=[CartItem.from_doc(it) for it in d.get("items") or []],
            sub_total=float(d.get("subTotal") or 0.0),
            discount=float(d.get("discount") or 0.0),
            tax=float(d.get("tax") or 0.0),
            total=float(d.get("total") or 0.0),
            payment_method=str(d.get("paymentMethod") or ""),
            status=str(d.get("status") or STATUS_COMPLETED),
            returned_items={str(k): int(v) for k, v in (d.get("returnedItems") or {}).items()},
            version=d.get(VERSION_FIELD),
        )
        for attr, key in cls._OPTIONAL.items():
            if d.get(key) is not None:
                setattr(s, attr, d[key])
        return s

    def to_doc(self) -> dict:
        doc = {
            "id": self.id,
            "timestamp": self.timestamp,
            "items": [it.to_doc() for it in self.items],
            "subTotal": self.sub_total,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
            "paymentMethod": self.payment_method,
            "status": self.status,
            "returnedItems": dict(self.returned_items),
        }
        for attr, key in self._OPTIONAL.items():
            val = getattr(self, attr)
            if val is not None:
                doc[key] = val
        return doc

    # ---- derived ----
    def allocate(self, item_id: str, qty: int, skip: int = 0) -> list[tuple[CartItem, int]]:
        """
        Spread `qty` units of `item_id` over the sale lines for that product,
        in line order, after the first `skip` units (already returned).
        Returns (line, units) pairs; units beyond what was sold are dropped.
        """
        out: list[tuple[CartItem, int]] = []
        for it in self.items:
            if it.id != item_id or qty <= 0:
                continue
            consumed = min(skip, it.quantity)
            skip -= consumed
            take = min(it.quantity - consumed, qty)
            if take > 0:
                out.append((it, take))
                qty -= take
        return out

    def sold_quantities(self) -> dict[str, int]:
        """item id -> quantity sold (lines for the same product summed)."""
        out: dict[str, int] = {}
        for it in self.items:
            out[it.id] = out.get(it.id, 0) + it.quantity
        return out

    @property
    def total_returned(self) -> int:
        return sum(self.returned_items.values())

    @property
    def date(self) -> str:
        return datetime.fromtimestamp(self.timestamp / 1000).date().isoformat()


class SalesRepo:
    """
    Sale ledger.

    Key behavior:
      - Sales are appended once (add) and never deleted.
      - After creation only `status` and `returnedItems` change
        (record_returns), always conditioned on the version that was read.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def get(self, sale_id: str) -> Sale | None:
        d = self.store.get(COLL_SALES, sale_id)
        return Sale.from_doc(d) if d else None

    def require(self, sale_id: str, *, txn: Transaction | None = None) -> Sale:
        d = txn.get(COLL_SALES, sale_id) if txn is not None else self.store.get(COLL_SALES, sale_id)
        if not d:
            raise SaleNotFound(f"Unknown sale_id: {sale_id}")
        return Sale.from_doc(d)

    def list_sales(self) -> list[Sale]:
        """Newest first."""
        sales = [Sale.from_doc(d) for d in self.store.list(COLL_SALES)]
        return sorted(sales, key=lambda s: (s.timestamp, s.id), reverse=True)

    def search_sales(
        self,
        query: str = "",
        date: str | None = None,
        *,
        status: str | None = None,
    ) -> list[Sale]:
        """
        Filter by sale id / customer name substring, ISO day (YYYY-MM-DD)
        and settlement status. Newest first.
        """
        q = (query or "").strip().lower()
        out = []
        for s in self.list_sales():
            if q and q not in s.id.lower() and q not in (s.customer_name or "").lower():
                continue
            if date and s.date != date:
                continue
            if status and s.status != status:
                continue
            out.append(s)
        return out

    def sale_return_totals(self, sale_id: str) -> dict:
        """Cumulative returned quantity and its list-price value."""
        s = self.require(sale_id)
        value = 0.0
        for item_id, qty in s.returned_items.items():
            for it, units in s.allocate(item_id, qty):
                value += it.sell_price * units
        return {"qty": s.total_returned, "value": value}

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def add(self, sale: Sale, *, txn: Transaction) -> None:
        """Append a new sale; fails with ConflictError if the id is taken."""
        txn.create(COLL_SALES, sale.id, sale.to_doc())

    def record_returns(self, sale: Sale, returned_items: dict[str, int], status: str, *, txn: Transaction) -> None:
        txn.update(
            COLL_SALES,
            sale.id,
            {"returnedItems": copy.deepcopy(returned_items), "status": status},
            expected_version=sale.version,
        )
