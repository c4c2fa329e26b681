# retail_pos/app.py
"""
Composition root: one store, chosen once from configuration, shared by every
service. Collaborators (register screen, order history, stock count) hold a
PosApp and call its operations.
"""
from __future__ import annotations

from typing import Mapping, Optional

from .config import AppConfig, load_config
from .database import open_store
from .database.repositories import InventoryRepo, ProductsRepo, SalesRepo, SettingsRepo
from .database.seeders.default_data import install_seeding
from .database.store import DocumentStore
from .modules.inventory import StockAdjustment, StockAuditService
from .modules.sales import CheckoutService, RefundSummary, ReturnProcessor
from .utils.loggers import get_logger

_log = get_logger(__name__)


class PosApp:
    def __init__(self, store: DocumentStore, config: AppConfig):
        self.config = config
        self.store = store

        self.products = ProductsRepo(store)
        self.sales = SalesRepo(store)
        self.settings = SettingsRepo(store)
        self.inventory = InventoryRepo(
            store, cas_retries=config.cas_retries, allow_negative=config.allow_negative_stock
        )

        self._checkout = CheckoutService(store, config)
        self._returns = ReturnProcessor(store, config)
        self._audit = StockAuditService(store, config)

        self.seeders = install_seeding(store) if config.seed_defaults else []

    # ---- collaborator operations ----
    def checkout(self, cart, payment_method: str, sub_total: float, discount: float, tax: float, total: float, **extras):
        return self._checkout.checkout(cart, payment_method, sub_total, discount, tax, total, **extras)

    def process_return(self, sale_id: str, return_map: Mapping[str, int]) -> RefundSummary:
        return self._returns.process_return(sale_id, return_map)

    def adjust_absolute_stock(self, product_id: str, new_value: int, processed_by: Optional[str] = None) -> StockAdjustment:
        return self._audit.adjust_absolute_stock(product_id, new_value, processed_by)

    @property
    def stock_audit(self) -> StockAuditService:
        return self._audit

    def close(self) -> None:
        self.store.close()


def create_app(config: Optional[AppConfig] = None) -> PosApp:
    """Load configuration (environment when not given), set up logging, open the store."""
    config = config or load_config()
    get_logger(level=config.log_level, json_file=config.log_file)
    store = open_store(config)
    _log.info("Store opened (backend=%s)", store.backend)
    return PosApp(store, config)
