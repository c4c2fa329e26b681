# retail_pos/modules/sales/returns.py
"""
Return/refund processing against a recorded sale.

A return request is a map {item_id: qty}. Each call:
  - validates the request against what is still returnable on the sale,
  - merges it additively into the sale's cumulative returnedItems,
  - derives the new settlement status,
  - restocks the returned products,
all in one transaction, and reports the refund for THIS call only.

Refunds are valued at the item's snapshot sellPrice. With prorate_refunds
enabled the value is scaled by total / subTotal (the sale's discount and
tax share), the same order-level factor applied to sale returns elsewhere
in the ledger.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from ...config import AppConfig
from ...constants import COLL_PRODUCTS
from ...database.repositories.inventory_repo import InventoryRepo
from ...database.repositories.sales_repo import Sale, SalesRepo
from ...database.repositories.sales_returns_helpers import get_returnable_quantities
from ...database.store import DocumentStore, Transaction, run_in_transaction
from ...errors import (
    EmptyReturnError,
    OverReturnError,
    StoreError,
    ValidationError,
    ZeroRefundError,
)
from ...utils.helpers import round_money
from ...utils.loggers import log_event
from ...utils.validators import parse_quantity
from .status import derive_status

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundLine:
    name: str
    price: float
    qty: int

    def to_dict(self) -> dict:
        return {"name": self.name, "price": self.price, "qty": self.qty}


@dataclass(frozen=True)
class RefundSummary:
    original_sale_id: str
    line_items: List[RefundLine] = field(default_factory=list)
    total: float = 0.0
    status: Optional[str] = None

    def to_dict(self) -> dict:
        """Receipt payload."""
        return {
            "originalSaleId": self.original_sale_id,
            "lineItems": [li.to_dict() for li in self.line_items],
            "total": self.total,
        }


def normalize_return_map(return_map: Mapping[str, object]) -> Dict[str, int]:
    """
    Zero entries are dropped. Negative or fractional quantities raise
    ValidationError; an empty result raises EmptyReturnError.
    """
    out: Dict[str, int] = {}
    for item_id, raw in (return_map or {}).items():
        try:
            qty = parse_quantity(raw)
        except ValueError as e:
            raise ValidationError(f"Invalid return quantity for {item_id}: {e}") from e
        if qty < 0:
            raise ValidationError(f"Return quantity for {item_id} cannot be negative.")
        if qty:
            out[str(item_id)] = qty
    if not out:
        raise EmptyReturnError("Select at least one item to return.")
    return out


def check_returnable(sale: Sale, requested: Mapping[str, int]) -> None:
    """Every requested item must be on the sale and within its remaining quantity."""
    remaining = get_returnable_quantities(sale)
    for item_id, qty in requested.items():
        if item_id not in remaining:
            raise ValidationError(f"Item {item_id} is not part of sale {sale.id}.")
        if qty > remaining[item_id]:
            raise OverReturnError(
                f"Cannot return {qty} of {item_id}: only {remaining[item_id]} left to return."
            )


def refund_lines(sale: Sale, requested: Mapping[str, int]) -> List[RefundLine]:
    """
    One RefundLine per sale line touched. Units are taken from a product's
    lines in order, after the units earlier returns already took, so each
    unit is valued at the snapshot price of the line it was sold on.
    """
    lines = []
    for item_id, qty in requested.items():
        already = int(sale.returned_items.get(item_id, 0))
        for it, units in sale.allocate(item_id, qty, skip=already):
            lines.append(RefundLine(name=it.name, price=it.sell_price, qty=units))
    return lines


def refund_total(sale: Sale, lines: List[RefundLine], *, prorate: bool = False) -> float:
    value = sum(li.price * li.qty for li in lines)
    if prorate and sale.sub_total > 0:
        value *= sale.total / sale.sub_total
    return round_money(value)


class ReturnProcessor:
    def __init__(self, store: DocumentStore, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        self.store = store
        self.sales = SalesRepo(store)
        self.inventory = InventoryRepo(store, cas_retries=self.config.cas_retries)

    def process_return(self, sale_id: str, return_map: Mapping[str, object]) -> RefundSummary:
        """
        Apply one return event to `sale_id` and restock.

        Raises:
            EmptyReturnError, ValidationError, OverReturnError,
            ZeroRefundError, SaleNotFound: nothing written.
            ConflictError: retries exhausted, nothing written.
        """
        requested = normalize_return_map(return_map)

        def work(txn: Transaction) -> RefundSummary:
            sale = self.sales.require(sale_id, txn=txn)
            check_returnable(sale, requested)

            lines = refund_lines(sale, requested)
            total = refund_total(sale, lines, prorate=self.config.prorate_refunds)
            if total <= 0:
                raise ZeroRefundError("Refund amount must be greater than zero.")

            merged = dict(sale.returned_items)
            for item_id, qty in requested.items():
                merged[item_id] = merged.get(item_id, 0) + qty
            new_status = derive_status((it.quantity for it in sale.items), merged)

            self.sales.record_returns(sale, merged, new_status, txn=txn)
            for item_id, qty in requested.items():
                if txn.get(COLL_PRODUCTS, item_id) is None:
                    _log.warning("Product %s no longer in catalog; not restocking %d unit(s)", item_id, qty)
                    continue
                self.inventory.adjust_stock(item_id, qty, txn=txn)

            return RefundSummary(original_sale_id=sale.id, line_items=lines, total=total, status=new_status)

        try:
            summary = run_in_transaction(self.store, work, retries=self.config.cas_retries, op="return")
        except StoreError:
            _log.exception("Return failed for sale %s", sale_id)
            raise

        log_event(
            _log, "return", "committed", f"Return recorded on sale {summary.original_sale_id}",
            {
                "sale_id": summary.original_sale_id,
                "items": requested,
                "refund": summary.total,
                "status": summary.status,
            },
        )
        return summary


def process_return(
    store: DocumentStore,
    sale_id: str,
    return_map: Mapping[str, object],
    *,
    config: Optional[AppConfig] = None,
) -> RefundSummary:
    """Functional entry point; see ReturnProcessor.process_return()."""
    return ReturnProcessor(store, config).process_return(sale_id, return_map)
