# retail_pos/database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from retail_pos.database.repositories import (
        # Products / catalog
        ProductsRepo, Product,
        # Inventory
        InventoryRepo,
        # Sales
        SalesRepo, Sale, CartItem, get_returnable_quantities,
        # Settings
        SettingsRepo, StoreSettings,
    )
"""

# ---------------- Products -----------------
from .products_repo import ProductsRepo, Product

# ---------------- Inventory ----------------
from .inventory_repo import InventoryRepo

# ------------------ Sales ------------------
from .sales_repo import SalesRepo, Sale, CartItem
from .sales_returns_helpers import get_returnable_quantities, returnable_for_sale

# ----------------- Settings ----------------
from .settings_repo import SettingsRepo, StoreSettings

__all__ = [
    # products_repo
    "ProductsRepo",
    "Product",
    # inventory_repo
    "InventoryRepo",
    # sales
    "SalesRepo",
    "Sale",
    "CartItem",
    "get_returnable_quantities",
    "returnable_for_sale",
    # settings
    "SettingsRepo",
    "StoreSettings",
]
