# Overview: Error taxonomy shared by the ledger, the workflows and the API layer.

"""
Every failure the core can report is an InventoryError subclass with a stable
``code`` and ``http_status``. Routes render them through one error handler, so
identical failures always produce identical responses.

Errors raised inside a transaction abort it and propagate unchanged; callers
never need to unwrap a generic transaction error.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for all caller-visible inventory errors."""
    code = "inventory_error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class InvalidInputError(InventoryError):
    """Malformed or missing required fields. Caller-fixable, never retried."""
    code = "invalid_input"


class InvalidProductError(InventoryError):
    """Referenced product is missing, inactive or not owned by the caller."""
    code = "invalid_product"


class InvalidSupplierError(InventoryError):
    """Referenced supplier is missing, inactive or not owned by the caller."""
    code = "invalid_supplier"


class InvalidMovementError(InventoryError):
    """Bad movement type, quantity or annotation passed to the ledger."""
    code = "invalid_movement"


class InsufficientStockError(InventoryError):
    """Business-rule rejection: the decrement would drive stock below zero."""
    code = "insufficient_stock"
    http_status = 409

    def __init__(
        self,
        product_id: int,
        *,
        available: int | None = None,
        requested: int | None = None,
        product_name: str | None = None,
    ):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}.",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class NotFoundError(InventoryError):
    """Entity does not exist within the caller's ownership scope."""
    code = "not_found"
    http_status = 404


class InvalidStateTransitionError(InventoryError):
    """Document status machine violation."""
    code = "invalid_state_transition"
    http_status = 409


class DuplicateKeyError(InventoryError):
    """Unique constraint violation surfaced from the store."""
    code = "duplicate_key"
    http_status = 409


class StockRecordNotFoundError(InventoryError):
    """
    Data-integrity violation: an active product has no stock record.

    Unreachable while product creation holds its invariant; surfaced as an
    internal error.
    """
    code = "stock_record_not_found"
    http_status = 500

    def __init__(self, product_id: int):
        super().__init__(
            f"Stock record not found for product ID: {product_id}.",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class StorageUnavailableError(InventoryError):
    """Infrastructure failure. Safe to retry the whole operation."""
    code = "storage_unavailable"
    http_status = 503
