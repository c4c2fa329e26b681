from __future__ import annotations

from retail_pos.constants import COLL_CATEGORIES, COLL_PRODUCTS, COLL_USERS
from retail_pos.database.repositories import ProductsRepo
from retail_pos.database.seeders.default_data import INITIAL_PRODUCTS, INITIAL_USERS, install_seeding


def test_seeds_empty_live_store(store):
    watchers = install_seeding(store)
    assert all(w.done for w in watchers)
    assert len(store.list(COLL_PRODUCTS)) == len(INITIAL_PRODUCTS)
    assert len(store.list(COLL_USERS)) == len(INITIAL_USERS)
    assert ProductsRepo(store).list_categories() == ["Apparel", "Electronics"]
    assert all(not subs for subs in store._subs.values())


def test_does_not_touch_populated_collections(catalog):
    watchers = install_seeding(catalog)
    by_coll = {w.collection: w.seeded for w in watchers}
    assert by_coll[COLL_PRODUCTS] == 0
    assert {d["id"] for d in catalog.list(COLL_PRODUCTS)} == {"P1", "P2"}
    assert by_coll[COLL_USERS] == len(INITIAL_USERS)
    assert len(catalog.list(COLL_CATEGORIES)) == 2


def test_seeding_twice_is_idempotent(store):
    install_seeding(store)
    again = install_seeding(store)
    assert all(w.seeded == 0 for w in again)
    assert len(store.list(COLL_PRODUCTS)) == len(INITIAL_PRODUCTS)


def test_seeded_users_carry_no_credentials(store):
    install_seeding(store)
    assert all("password" not in u for u in store.list(COLL_USERS))
