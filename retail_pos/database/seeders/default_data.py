# retail_pos/database/seeders/default_data.py
"""
Default records written the first time a collection is observed empty.

Seeding only reacts to LIVE snapshots: an empty snapshot served from a cache
(remote backend offline) says nothing about the server and must not trigger
writes. Records are written with put(), so two clients seeding the same
empty collection at once converge on the same documents.
"""
from __future__ import annotations

import logging

from ...constants import COLL_CATEGORIES, COLL_PRODUCTS, COLL_USERS
from ...utils.loggers import log_event
from ..store import DocumentStore, Snapshot, Subscription, WriteOp

_log = logging.getLogger(__name__)

INITIAL_PRODUCTS: list[dict] = [
    {"id": "DEMO-CL-001", "sku": "TSH-BLK-M", "name": "Urban Essentials Tee - Black",
     "costPrice": 8.00, "sellPrice": 25.00, "stock": 40, "category": "Apparel",
     "size": "M", "color": "Black", "tags": ["Cotton", "Summer"]},
    {"id": "DEMO-CL-002", "sku": "TSH-WHT-L", "name": "Urban Essentials Tee - White",
     "costPrice": 8.00, "sellPrice": 25.00, "stock": 35, "category": "Apparel",
     "size": "L", "color": "White", "tags": ["Cotton", "Summer"]},
    {"id": "DEMO-CL-003", "sku": "HOD-NVY-XL", "name": "Premium Fleece Hoodie - Navy",
     "costPrice": 18.00, "sellPrice": 55.00, "stock": 20, "category": "Apparel",
     "size": "XL", "color": "Navy", "tags": ["Winter", "Heavyweight"]},
    {"id": "DEMO-CL-004", "sku": "JNS-BLU-32", "name": "Classic Slim Fit Denim",
     "costPrice": 22.00, "sellPrice": 65.00, "stock": 25, "category": "Apparel",
     "size": "32/S", "color": "Blue", "tags": ["Denim", "Stretch"]},
    {"id": "DEMO-EL-001", "sku": "SW-PRO-MAX", "name": "Titan Pro Smartwatch",
     "costPrice": 120.00, "sellPrice": 299.00, "stock": 12, "category": "Electronics",
     "color": "Space Gray", "tags": ["Tech", "OLED"]},
    {"id": "DEMO-EL-002", "sku": "EBD-AIR-V2", "name": "SonicWave Wireless Earbuds",
     "costPrice": 45.00, "sellPrice": 129.00, "stock": 18, "category": "Electronics",
     "color": "Matte Black", "tags": ["Audio", "Bluetooth"]},
]

INITIAL_USERS: list[dict] = [
    {"id": "demo_admin", "name": "Administrator", "username": "admin", "role": "ADMIN"},
    {"id": "demo_cashier", "name": "Cashier User", "username": "cashier", "role": "CASHIER"},
]


def initial_categories() -> list[dict]:
    names = sorted({p["category"] for p in INITIAL_PRODUCTS})
    return [{"id": n, "name": n} for n in names]


DEFAULTS: dict[str, list[dict]] = {
    COLL_PRODUCTS: INITIAL_PRODUCTS,
    COLL_USERS: INITIAL_USERS,
    COLL_CATEGORIES: initial_categories(),
}


def seed_collection(store: DocumentStore, collection: str, records: list[dict]) -> int:
    """Write `records` in one batch. Returns how many were written."""
    ops = [WriteOp.put(collection, r["id"], r) for r in records]
    store.batch_commit(ops)
    log_event(_log, "seed", "committed", f"Seeded {collection}", {"collection": collection, "count": len(ops)})
    return len(ops)


class _FirstLiveObservation:
    """Seeds `collection` on the first live snapshot if it is empty, then detaches."""

    def __init__(self, store: DocumentStore, collection: str, records: list[dict]):
        self.store = store
        self.collection = collection
        self.records = records
        self.sub: Subscription | None = None
        self.done = False
        self.seeded = 0

    def __call__(self, snap: Snapshot) -> None:
        if self.done or snap.from_cache:
            return
        # mark first: seed_collection() publishes a snapshot back to us
        self.done = True
        if snap.empty:
            self.seeded = seed_collection(self.store, self.collection, self.records)
        if self.sub is not None:
            self.sub.unsubscribe()


def install_seeding(store: DocumentStore, defaults: dict[str, list[dict]] | None = None) -> list[_FirstLiveObservation]:
    """
    Subscribe a one-shot seeder to every collection in `defaults`
    (products, users, categories by default).
    """
    watchers = []
    for collection, records in (defaults or DEFAULTS).items():
        w = _FirstLiveObservation(store, collection, records)
        w.sub = store.subscribe(collection, w)
        if w.done and w.sub.active:
            w.sub.unsubscribe()
        watchers.append(w)
    return watchers
