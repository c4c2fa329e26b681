# retail_pos/database/repositories/settings_repo.py
from __future__ import annotations

from dataclasses import asdict, dataclass

from ...constants import COLL_SETTINGS, SETTINGS_DOC_ID
from ..store import DocumentStore


@dataclass
class StoreSettings:
    name: str = "easyPOS"
    address: str = "Retail Management System"
    phone: str = ""
    footer_message: str = "Thank you!"
    receipt_size: str = "80mm"
    tax_enabled: bool = False
    tax_rate: float = 0.0
    tax_name: str = "Tax"
    auto_print: bool = False

    _KEYS = {
        "footer_message": "footerMessage",
        "receipt_size": "receiptSize",
        "tax_enabled": "taxEnabled",
        "tax_rate": "taxRate",
        "tax_name": "taxName",
        "auto_print": "autoPrint",
    }

    @classmethod
    def from_doc(cls, d: dict | None) -> "StoreSettings":
        s = cls()
        if not d:
            return s
        for attr in asdict(s):
            key = cls._KEYS.get(attr, attr)
            if key in d and d[key] is not None:
                setattr(s, attr, d[key])
        s.tax_rate = float(s.tax_rate)
        s.tax_enabled = bool(s.tax_enabled)
        return s

    def to_doc(self) -> dict:
        return {self._KEYS.get(k, k): v for k, v in asdict(self).items()}


class SettingsRepo:
    """Singleton store-configuration document (settings/store)."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self) -> StoreSettings:
        """Stored settings merged over defaults."""
        return StoreSettings.from_doc(self.store.get(COLL_SETTINGS, SETTINGS_DOC_ID))

    def save(self, settings: StoreSettings) -> None:
        self.store.put(COLL_SETTINGS, SETTINGS_DOC_ID, settings.to_doc())
