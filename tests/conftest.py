# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own SQLite file under tmp_path (no shared DB)
# - `catalog` seeds two known products; other fixtures build on it
# - Services are constructed with an explicit AppConfig
# ---------------------------------------------------------------------

from __future__ import annotations

import pytest

from retail_pos.config import AppConfig
from retail_pos.constants import COLL_PRODUCTS
from retail_pos.database.local_store import SqliteDocumentStore


P1 = {
    "id": "P1", "sku": "TSH-BLK-M", "name": "Tee Black", "costPrice": 6.0,
    "sellPrice": 18.50, "stock": 10, "category": "Apparel", "size": "M",
}
P2 = {
    "id": "P2", "sku": "CAP-RED", "name": "Cap Red", "costPrice": 3.0,
    "sellPrice": 10.00, "stock": 5, "category": "Accessories",
}


# ---------- Store ----------
@pytest.fixture()
def store(tmp_path):
    s = SqliteDocumentStore(tmp_path / "pos.db")
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def config(tmp_path) -> AppConfig:
    return AppConfig(db_path=tmp_path / "pos.db", cas_retries=3)


# ---------- Seeded catalog ----------
@pytest.fixture()
def catalog(store):
    store.put(COLL_PRODUCTS, P1["id"], P1)
    store.put(COLL_PRODUCTS, P2["id"], P2)
    return store


@pytest.fixture()
def p1() -> dict:
    return dict(P1)


@pytest.fixture()
def p2() -> dict:
    return dict(P2)


def cart_line(product: dict, quantity: int) -> dict:
    line = dict(product)
    line["quantity"] = quantity
    return line


@pytest.fixture()
def make_line():
    return cart_line


def stock_of(store, pid: str) -> int:
    return store.get(COLL_PRODUCTS, pid)["stock"]


@pytest.fixture()
def stock():
    return stock_of
