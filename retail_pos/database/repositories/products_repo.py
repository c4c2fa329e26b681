# retail_pos/database/repositories/products_repo.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ...constants import COLL_CATEGORIES, COLL_PRODUCTS, VERSION_FIELD
from ..store import DocumentStore


@dataclass
class Product:
    id: str
    sku: str
    name: str
    cost_price: float
    sell_price: float
    stock: int
    category: str
    image: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    version: Optional[int] = None

    @classmethod
    def from_doc(cls, d: dict) -> "Product":
        return cls(
            id=str(d["id"]),
            sku=str(d.get("sku") or ""),
            name=str(d.get("name") or ""),
            cost_price=float(d.get("costPrice") or 0.0),
            sell_price=float(d.get("sellPrice") or 0.0),
            stock=int(d.get("stock") or 0),
            category=str(d.get("category") or ""),
            image=d.get("image"),
            tags=list(d.get("tags") or []),
            version=d.get(VERSION_FIELD),
        )

    def to_doc(self) -> dict:
        doc = {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "costPrice": self.cost_price,
            "sellPrice": self.sell_price,
            "stock": self.stock,
            "category": self.category,
        }
        if self.image is not None:
            doc["image"] = self.image
        if self.tags:
            doc["tags"] = list(self.tags)
        return doc


class ProductsRepo:
    """
    Read access to the catalog plus the catalog-facing save/delete used by
    the editing collaborator and the seeders.

    `stock` is NOT writable through here once a product exists: only
    checkout, returns and the stock audit move it (see InventoryRepo).
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # ---------------------------- Products ----------------------------

    def list_products(self) -> list[Product]:
        rows = self.store.list(COLL_PRODUCTS)
        return sorted((Product.from_doc(r) for r in rows), key=lambda p: p.name.lower())

    def get(self, product_id: str) -> Product | None:
        d = self.store.get(COLL_PRODUCTS, product_id)
        return Product.from_doc(d) if d else None

    def find_by_sku(self, sku: str) -> Product | None:
        """Case-insensitive SKU lookup (barcode/stock-count entry)."""
        needle = (sku or "").strip().lower()
        if not needle:
            return None
        for r in self.store.list(COLL_PRODUCTS):
            if str(r.get("sku") or "").lower() == needle:
                return Product.from_doc(r)
        return None

    def save(self, product: Product) -> None:
        """
        Create the product with its initial stock, or update every catalog
        field except stock when it already exists.
        """
        existing = self.store.get(COLL_PRODUCTS, product.id)
        if existing is None:
            self.store.create(COLL_PRODUCTS, product.id, product.to_doc())
            return
        patch = product.to_doc()
        patch.pop("stock", None)
        self.store.update(COLL_PRODUCTS, product.id, patch, expected_version=existing[VERSION_FIELD])

    def delete(self, product_id: str) -> None:
        """Historical sales keep their own item snapshots, so deletion is safe for the ledger."""
        self.store.delete(COLL_PRODUCTS, product_id)

    # ---------------------------- Categories ----------------------------

    def list_categories(self) -> list[str]:
        """
        Category names from the categories collection; when it is empty,
        derived from the products' categories.
        """
        rows = self.store.list(COLL_CATEGORIES)
        if rows:
            return sorted(str(r.get("name") or r.get("id")) for r in rows)
        return sorted({p.category for p in self.list_products() if p.category})
