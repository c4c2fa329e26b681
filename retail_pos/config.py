# retail_pos/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME, DEFAULT_MONGO_DB

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = DATA_PATH / DB_FILE_NAME


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class AppConfig:
    """
    Runtime configuration.

    mongo_uri selects the backend: when set, the remote replicated store is
    used; otherwise the local SQLite key-value store at db_path.
    """
    mongo_uri: str | None = None
    mongo_db: str = DEFAULT_MONGO_DB
    mongo_timeout_ms: int = 5000
    db_path: Path = DB_PATH
    cas_retries: int = 3
    allow_negative_stock: bool = False
    prorate_refunds: bool = False
    seed_defaults: bool = True
    log_level: str = "INFO"
    log_file: Path | None = None

    @property
    def is_remote(self) -> bool:
        return bool(self.mongo_uri)


def load_config() -> AppConfig:
    """Build an AppConfig from POS_* environment variables."""
    data_dir = os.environ.get("POS_DATA_DIR")
    db_file = os.environ.get("POS_DB_FILE") or DB_FILE_NAME
    db_path = (Path(data_dir) if data_dir else DATA_PATH) / db_file

    return AppConfig(
        mongo_uri=(os.environ.get("POS_MONGO_URI") or None),
        mongo_db=os.environ.get("POS_MONGO_DB") or DEFAULT_MONGO_DB,
        mongo_timeout_ms=_env_int("POS_MONGO_TIMEOUT_MS", 5000),
        db_path=db_path,
        cas_retries=max(0, _env_int("POS_CAS_RETRIES", 3)),
        allow_negative_stock=_env_bool("POS_ALLOW_NEGATIVE_STOCK"),
        prorate_refunds=_env_bool("POS_PRORATE_REFUNDS"),
        seed_defaults=_env_bool("POS_SEED_DEFAULTS", True),
        log_level=(os.environ.get("POS_LOG_LEVEL") or "INFO").upper(),
        log_file=Path(os.environ["POS_LOG_FILE"]) if os.environ.get("POS_LOG_FILE") else None,
    )
