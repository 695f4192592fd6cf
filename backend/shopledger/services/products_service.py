# backend/shopledger/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are owner-scoped. A product owned by
another user behaves exactly like a missing one.

STOCK INVARIANT: A product and its StockRecord are created in the same
transaction, so every product has exactly one stock record. Products are
never hard-deleted; deactivation keeps the stock record and its history.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, StockRecord
from ..models.inventory import PRODUCT_UNITS
from ..errors import (
    DuplicateKeyError,
    InvalidInputError,
    InvalidProductError,
    InvalidStateTransitionError,
    NotFoundError,
)
from ..validation import MAX_QUANTITY, coerce_int, require_cents
from .supplier_service import require_active_supplier
from .stock_service import create_stock_record
from .concurrency import lock_for_update
from .transaction_service import run_in_transaction


def create_product(
    owner_id: int,
    *,
    name: str,
    sku: str,
    unit: str = "piece",
    purchase_price_cents=0,
    selling_price_cents=0,
    min_stock_level=10,
    supplier_id: int | None = None,
    initial_stock=0,
) -> tuple[Product, StockRecord]:
    """
    Create a product together with its stock record.

    A positive initial_stock is recorded as an "adjustment" movement sourced
    from the product itself.

    Raises:
        InvalidInputError: Missing/invalid fields
        InvalidSupplierError: supplier_id given but not active/owned
        DuplicateKeyError: SKU already used by this owner
    """
    name = (name or "").strip()
    if len(name) < 2:
        raise InvalidInputError("Product name must be at least 2 characters")

    sku = (sku or "").strip().upper()
    if not 3 <= len(sku) <= 20:
        raise InvalidInputError("SKU must be between 3 and 20 characters")

    if unit not in PRODUCT_UNITS:
        raise InvalidInputError(f"unit must be one of: {', '.join(sorted(PRODUCT_UNITS))}")

    purchase_price_cents = require_cents(purchase_price_cents, "purchase_price_cents")
    selling_price_cents = require_cents(selling_price_cents, "selling_price_cents")

    min_stock_level = coerce_int(min_stock_level, "min_stock_level")
    if min_stock_level < 0:
        raise InvalidInputError("min_stock_level cannot be negative")

    initial_stock = coerce_int(initial_stock, "initial_stock")
    if initial_stock < 0:
        raise InvalidInputError("initial_stock cannot be negative")
    if initial_stock > MAX_QUANTITY:
        raise InvalidInputError(f"initial_stock cannot exceed {MAX_QUANTITY}")

    if supplier_id is not None:
        require_active_supplier(owner_id, supplier_id)

    existing = db.session.query(Product).filter_by(created_by_user_id=owner_id, sku=sku).first()
    if existing:
        raise DuplicateKeyError("Product with this SKU already exists.")

    def _work(tx):
        product = Product(
            created_by_user_id=owner_id,
            supplier_id=supplier_id,
            name=name,
            sku=sku,
            unit=unit,
            purchase_price_cents=purchase_price_cents,
            selling_price_cents=selling_price_cents,
            min_stock_level=min_stock_level,
            is_active=True,
        )
        tx.add(product)
        tx.flush()

        record = create_stock_record(
            tx,
            product=product,
            initial_stock=initial_stock,
            acting_user_id=owner_id,
        )
        return product, record

    product, record = run_in_transaction(_work)
    current_app.logger.info(
        "Product %s created for owner %s with initial stock %s",
        product.sku, owner_id, initial_stock,
    )
    return product, record


def require_active_product(owner_id: int, product_id: int) -> Product:
    """Product lookup used by sale and purchase validation."""
    product = (
        db.session.query(Product)
        .filter_by(id=product_id, created_by_user_id=owner_id)
        .first()
    )
    if not product or not product.is_active:
        raise InvalidProductError(
            f"Product not found or is inactive: {product_id}.",
            details={"product_id": product_id},
        )
    return product


def _set_active(owner_id: int, product_id: int, active: bool) -> Product:
    def _work(tx):
        product = lock_for_update(
            tx.session.query(Product).filter_by(id=product_id, created_by_user_id=owner_id)
        ).populate_existing().first()
        if not product:
            raise NotFoundError("Product not found.")
        if product.is_active == active:
            state = "active" if active else "inactive"
            raise InvalidStateTransitionError(f"Product is already {state}.")
        product.is_active = active
        tx.flush()
        return product

    return run_in_transaction(_work)


def deactivate_product(owner_id: int, product_id: int) -> Product:
    """Soft delete. The stock record and its history are kept."""
    return _set_active(owner_id, product_id, False)


def activate_product(owner_id: int, product_id: int) -> Product:
    return _set_active(owner_id, product_id, True)
