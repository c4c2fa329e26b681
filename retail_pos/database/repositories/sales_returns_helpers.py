from __future__ import annotations

from typing import Dict

from .sales_repo import Sale, SalesRepo


def get_returnable_quantities(sale: Sale) -> Dict[str, int]:
    """
    Compute remaining returnable quantity per sale item.

    Returns a dict mapping item_id -> remaining_qty (clamped to >= 0).
    """
    out: Dict[str, int] = {}
    for item_id, sold_qty in sale.sold_quantities().items():
        returned_so_far = int(sale.returned_items.get(item_id, 0))
        out[item_id] = max(0, sold_qty - returned_so_far)
    return out


def returnable_for_sale(repo: SalesRepo, sale_id: str) -> Dict[str, int]:
    """Same as get_returnable_quantities(), loading the sale by id (SaleNotFound if missing)."""
    return get_returnable_quantities(repo.require(sale_id))
