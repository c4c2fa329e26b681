from .checkout import CheckoutService, checkout
from .pricing import Totals, compute_totals
from .returns import RefundLine, RefundSummary, ReturnProcessor, process_return
from .status import derive_status

__all__ = [
    "CheckoutService",
    "checkout",
    "Totals",
    "compute_totals",
    "RefundLine",
    "RefundSummary",
    "ReturnProcessor",
    "process_return",
    "derive_status",
]
