from __future__ import annotations
from typing import Iterable, Mapping

from ...constants import STATUS_COMPLETED, STATUS_PARTIAL, STATUS_REFUNDED


def derive_status(sold_quantities: Iterable[int], returned: Mapping[str, int]) -> str:
    """
    Settlement status from unit counts:
      - REFUNDED  if total returned >= total sold
      - PARTIAL   if 0 < total returned < total sold
      - COMPLETED otherwise

    Compares sums, not per-item quantities.
    """
    total_sold = sum(int(q) for q in sold_quantities)
    total_returned = sum(int(q) for q in returned.values())
    if total_returned <= 0:
        return STATUS_COMPLETED
    if total_returned >= total_sold:
        return STATUS_REFUNDED
    return STATUS_PARTIAL
