"""Inventory repository: relative/absolute stock moves and stock reporting."""
from __future__ import annotations

import pytest

from retail_pos.database.repositories.inventory_repo import InventoryRepo
from retail_pos.errors import InsufficientStockError, ProductNotFound


def test_get_stock_and_levels(catalog):
    repo = InventoryRepo(catalog)
    assert repo.get_stock("P1") == 10
    assert repo.stock_levels() == {"P1": 10, "P2": 5}
    with pytest.raises(ProductNotFound):
        repo.get_stock("nope")


def test_adjust_stock_both_directions(catalog, stock):
    repo = InventoryRepo(catalog)
    assert repo.adjust_stock("P1", -3) == 7
    assert repo.adjust_stock("P1", 2) == 9
    assert stock(catalog, "P1") == 9


def test_decrement_below_zero_rejected(catalog, stock):
    repo = InventoryRepo(catalog)
    with pytest.raises(InsufficientStockError) as ei:
        repo.adjust_stock("P2", -6)
    assert ei.value.available == 5
    assert ei.value.requested == 6
    assert stock(catalog, "P2") == 5


def test_negative_stock_when_allowed(catalog, stock):
    repo = InventoryRepo(catalog, allow_negative=True)
    assert repo.adjust_stock("P2", -6) == -1
    assert stock(catalog, "P2") == -1


def test_adjust_unknown_product(catalog):
    with pytest.raises(ProductNotFound):
        InventoryRepo(catalog).adjust_stock("nope", 1)


def test_set_stock_returns_previous(catalog, stock):
    repo = InventoryRepo(catalog)
    assert repo.set_stock("P1", 4) == 10
    assert stock(catalog, "P1") == 4
    with pytest.raises(ValueError):
        repo.set_stock("P1", -1)


def test_low_stock_sorted(catalog):
    repo = InventoryRepo(catalog)
    repo.set_stock("P1", 2)
    rows = repo.low_stock(threshold=5)
    assert [r["id"] for r in rows] == ["P1", "P2"]
    assert rows[0]["stock"] == 2
    assert repo.low_stock(threshold=1) == []
