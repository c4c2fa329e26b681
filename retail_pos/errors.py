# retail_pos/errors.py
"""
Error taxonomy shared by repositories and services.

DomainError and its subclasses are recoverable and safe to surface to the
calling collaborator (toast/snackbar). They are always raised before any
write is issued. StoreError covers backend failures.
"""
from __future__ import annotations


class DomainError(Exception):
    """Domain-level error the caller/UI can surface."""
    pass


class ValidationError(DomainError, ValueError):
    pass


class EmptyCartError(ValidationError):
    pass


class EmptyReturnError(ValidationError):
    pass


class ZeroRefundError(ValidationError):
    pass


class OverReturnError(ValidationError):
    pass


class InsufficientStockError(ValidationError):
    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"available {available}, requested {requested}"
        )


class NotFoundError(DomainError, LookupError):
    pass


class SaleNotFound(NotFoundError):
    pass


class ProductNotFound(NotFoundError):
    pass


class StoreError(Exception):
    """Persistence backend failure (read/write/commit)."""
    pass


class ConflictError(StoreError):
    """
    Optimistic concurrency failure: a document changed since it was read,
    or a create collided with an existing id.
    """
    pass


class DocumentMissing(StoreError, LookupError):
    """A conditional write targeted a document that no longer exists."""
    pass
