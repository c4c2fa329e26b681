"""
modules/sales/pricing.py

Pure helpers for the register's totals preview. The numbers produced here
are what a caller passes to checkout(); checkout itself never recomputes
them, it only checks total == subTotal - discount + tax.

Do not import repos or touch the store here.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ...constants import DISCOUNT_TYPES, MONEY_EPSILON
from ...utils.helpers import round_money

__all__ = [
    "Totals",
    "subtotal",
    "discount_amount",
    "tax_amount",
    "compute_totals",
    "totals_consistent",
]


@dataclass(frozen=True)
class Totals:
    sub_total: float
    discount: float
    tax: float
    total: float


def subtotal(cart: Iterable) -> float:
    """Σ sellPrice × quantity over CartItems (or dicts with those keys)."""
    s = 0.0
    for it in cart:
        if isinstance(it, dict):
            s += float(it.get("sellPrice") or 0.0) * int(it.get("quantity") or 0)
        else:
            s += it.sell_price * it.quantity
    return s


def discount_amount(sub_total: float, value: float, discount_type: str = "percent") -> float:
    """
    'percent': sub_total × value / 100
    'fixed':   value as-is

    Not clamped to sub_total.
    """
    if discount_type not in DISCOUNT_TYPES:
        raise ValueError("discount_type must be one of: percent, fixed")
    value = float(value or 0.0)
    if value < 0:
        raise ValueError("Discount cannot be negative.")
    if discount_type == "percent":
        return sub_total * value / 100.0
    return value


def tax_amount(taxable: float, tax_enabled: bool, tax_rate: float) -> float:
    """Tax applies to the post-discount amount."""
    if not tax_enabled:
        return 0.0
    return taxable * float(tax_rate or 0.0) / 100.0


def compute_totals(
    cart: Iterable,
    discount_value: float = 0.0,
    discount_type: str = "percent",
    tax_enabled: bool = False,
    tax_rate: float = 0.0,
) -> Totals:
    sub = subtotal(cart)
    disc = discount_amount(sub, discount_value, discount_type)
    tax = tax_amount(sub - disc, tax_enabled, tax_rate)
    # total is derived from the rounded parts so it always satisfies totals_consistent()
    sub, disc, tax = round_money(sub), round_money(disc), round_money(tax)
    return Totals(sub_total=sub, discount=disc, tax=tax, total=round_money(sub - disc + tax))


def totals_consistent(sub_total: float, discount: float, tax: float, total: float) -> bool:
    return abs((sub_total - discount + tax) - total) <= MONEY_EPSILON
