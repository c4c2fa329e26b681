# retail_pos/utils/helpers.py
import time
import uuid


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds (sale/adjustment timestamps)."""
    return int(time.time() * 1000)


def new_sale_id(ts_ms: int | None = None) -> str:
    """
    Sale ids sort by creation time but do not rely on it for uniqueness:
    <epoch-ms>-<12 hex chars of a uuid4>.
    """
    ts = now_ms() if ts_ms is None else int(ts_ms)
    return f"{ts}-{uuid.uuid4().hex[:12]}"


def new_record_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def round_money(x: float, places: int = 2) -> float:
    return round(float(x), places)
