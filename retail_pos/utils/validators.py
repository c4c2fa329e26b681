# retail_pos/utils/validators.py
import math


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)
    """
    if isinstance(x, bool):
        return False, None
    try:
        return True, float(x)
    except (TypeError, ValueError):
        return False, None


def parse_float(x) -> float:
    """
    Strict parse to float; raises ValueError with a clear message on failure.
    """
    ok, val = try_parse_float(x)
    if not ok:
        raise ValueError(f"Could not parse '{x}' as a number.")
    return val  # type: ignore[return-value]


def parse_quantity(x) -> int:
    """
    Strict parse to a whole-unit quantity. Accepts ints and integral floats
    ("2", 2.0); rejects bools, fractions, inf/nan and garbage with ValueError.
    """
    if isinstance(x, bool):
        raise ValueError(f"Could not parse {x!r} as a quantity.")
    if isinstance(x, int):
        return x
    ok, val = try_parse_float(x)
    if not ok or val is None or not math.isfinite(val) or val != int(val):
        raise ValueError(f"Could not parse {x!r} as a whole quantity.")
    return int(val)
