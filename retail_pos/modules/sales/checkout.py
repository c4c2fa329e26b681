# retail_pos/modules/sales/checkout.py
"""
Cart -> durable sale record + stock decrements, as one unit of work.

Everything that can be rejected (empty cart, bad payment method, bad
quantities, inconsistent totals) is rejected before the store is touched.
The write itself is a single transaction: the sale is created and every
product's stock is decremented under a version check, so a concurrent
checkout of the same product makes this one retry against fresh stock.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from ...config import AppConfig
from ...constants import DISCOUNT_TYPES, PAYMENT_METHODS, STATUS_COMPLETED
from ...database.repositories.inventory_repo import InventoryRepo
from ...database.repositories.sales_repo import CartItem, Sale, SalesRepo
from ...database.repositories.settings_repo import SettingsRepo
from ...database.store import DocumentStore, Transaction, run_in_transaction
from ...errors import EmptyCartError, StoreError, ValidationError
from ...utils.helpers import new_sale_id, now_ms
from ...utils.loggers import log_event
from ...utils.validators import non_empty, parse_float, parse_quantity
from .pricing import totals_consistent

_log = logging.getLogger(__name__)


def _as_cart_item(item) -> CartItem:
    """Independent copy of a cart line with its quantity parsed strictly."""
    if isinstance(item, CartItem):
        doc = item.to_doc()
    elif isinstance(item, dict):
        doc = dict(item)
    else:
        raise ValidationError(f"Unsupported cart line: {item!r}")
    if not non_empty(doc.get("id")):
        raise ValidationError("Cart line is missing a product id.")
    label = doc.get("name") or doc["id"]
    try:
        qty = parse_quantity(doc.get("quantity"))
    except ValueError as e:
        raise ValidationError(f"Invalid quantity for {label}: {e}") from e
    if qty < 1:
        raise ValidationError(f"Quantity for {label} must be at least 1.")
    doc["quantity"] = qty
    return CartItem.from_doc(doc)


class CheckoutService:
    def __init__(self, store: DocumentStore, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        self.store = store
        self.sales = SalesRepo(store)
        self.inventory = InventoryRepo(
            store,
            cas_retries=self.config.cas_retries,
            allow_negative=self.config.allow_negative_stock,
        )
        self.settings = SettingsRepo(store)

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_cart(cart: Iterable) -> list[CartItem]:
        items = [_as_cart_item(it) for it in (cart or [])]
        if not items:
            raise EmptyCartError("Cart is empty.")
        return items

    @staticmethod
    def _aggregate(items: list[CartItem]) -> dict[str, int]:
        """product id -> total quantity across lines."""
        out: dict[str, int] = {}
        for it in items:
            out[it.id] = out.get(it.id, 0) + it.quantity
        return out

    # ------------------------------------------------------------------
    # checkout
    # ------------------------------------------------------------------
    def checkout(
        self,
        cart: Iterable,
        payment_method: str,
        sub_total: float,
        discount: float,
        tax: float,
        total: float,
        *,
        discount_type: Optional[str] = None,
        tax_rate: Optional[float] = None,
        processed_by: Optional[str] = None,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> Sale:
        """
        Record a sale and decrement stock. Returns the committed Sale.

        Raises:
            EmptyCartError, ValidationError, InsufficientStockError,
            ProductNotFound: nothing written.
            ConflictError: retries exhausted, nothing written.
        """
        items = self._validate_cart(cart)

        method = str(payment_method or "").strip().upper()
        if method not in PAYMENT_METHODS:
            raise ValidationError("payment_method must be one of: " + ", ".join(PAYMENT_METHODS))
        if discount_type is not None and discount_type not in DISCOUNT_TYPES:
            raise ValidationError("discount_type must be one of: " + ", ".join(DISCOUNT_TYPES))

        try:
            sub_total, discount, tax, total = (parse_float(v) for v in (sub_total, discount, tax, total))
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if not totals_consistent(sub_total, discount, tax, total):
            raise ValidationError(
                f"Totals do not add up: {sub_total} - {discount} + {tax} != {total}"
            )

        if tax_rate is None:
            tax_rate = self.settings.get().tax_rate

        ts = now_ms()
        sale = Sale(
            id=new_sale_id(ts),
            timestamp=ts,
            items=items,
            sub_total=sub_total,
            discount=discount,
            tax=tax,
            total=total,
            payment_method=method,
            status=STATUS_COMPLETED,
            returned_items={},
            discount_type=discount_type,
            tax_rate=tax_rate,
            processed_by=processed_by,
            customer_name=customer_name or None,
            customer_phone=customer_phone or None,
        )
        quantities = self._aggregate(items)

        def work(txn: Transaction) -> dict[str, int]:
            self.sales.add(sale, txn=txn)
            return {pid: self.inventory.adjust_stock(pid, -qty, txn=txn) for pid, qty in quantities.items()}

        try:
            stock_after = run_in_transaction(
                self.store, work, retries=self.config.cas_retries, op="checkout"
            )
        except StoreError:
            _log.exception("Checkout failed for sale %s", sale.id)
            raise

        log_event(
            _log, "checkout", "committed", f"Sale {sale.id} recorded",
            {
                "sale_id": sale.id,
                "total": sale.total,
                "payment_method": sale.payment_method,
                "lines": len(items),
                "stock_after": stock_after,
            },
        )
        return sale


def checkout(
    store: DocumentStore,
    cart: Iterable,
    payment_method: str,
    sub_total: float,
    discount: float,
    tax: float,
    total: float,
    *,
    config: Optional[AppConfig] = None,
    **extras,
) -> Sale:
    """Functional entry point; see CheckoutService.checkout()."""
    return CheckoutService(store, config).checkout(
        cart, payment_method, sub_total, discount, tax, total, **extras
    )
