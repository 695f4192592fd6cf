# Overview: Stock ledger; the only code path that changes a product's quantity on hand.

"""
Stock Ledger Invariants (authoritative)

- One StockRecord per product; current_stock is the authoritative quantity.
- current_stock >= 0 after every committed operation.
- current_stock is changed ONLY by record_movement(), and every change appends
  exactly one StockMovement in the same transaction.
- Movement quantities are always positive; the sign comes from MovementType.
- Conservation: current_stock == sum(signed quantity of all movements).

Concurrency:
- record_movement() applies the delta with a single conditional UPDATE
  (increment + floor check in one statement), never read-then-write-back.
  Concurrent sales of the same product are serialized by the database; the
  loser sees rowcount 0 and gets InsufficientStockError.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update, func, or_

from ..extensions import db
from ..models import Product, StockRecord, StockMovement, MovementType
from ..models.inventory import SOURCE_MODELS, MAX_MOVEMENT_NOTES_LENGTH
from ..validation import MAX_QUANTITY, MAX_ID
from ..errors import (
    InvalidMovementError,
    InvalidInputError,
    InsufficientStockError,
    NotFoundError,
    StockRecordNotFoundError,
)
from shopledger.time_utils import utcnow
from .transaction_service import TransactionContext, run_in_transaction


STOCK_STATUS_FILTERS = {"low_stock", "out_of_stock", "in_stock"}


def _coerce_movement_type(movement_type) -> MovementType:
    if isinstance(movement_type, MovementType):
        return movement_type
    try:
        return MovementType(movement_type)
    except ValueError:
        allowed = ", ".join(f"'{m.value}'" for m in MovementType)
        raise InvalidMovementError(
            f"Invalid movement type provided. Must be one of {allowed}."
        ) from None


def _validate_movement(movement_type, quantity, notes, source_model, acting_user_id) -> MovementType:
    kind = _coerce_movement_type(movement_type)

    # bool is an int subclass; reject it explicitly along with floats
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise InvalidMovementError("Quantity for stock movement must be a positive integer.")
    if quantity > MAX_QUANTITY:
        raise InvalidMovementError(f"Quantity for stock movement cannot exceed {MAX_QUANTITY}.")
    if acting_user_id is None:
        raise InvalidMovementError("The user who performed this movement is required.")
    if source_model is not None and source_model not in SOURCE_MODELS:
        raise InvalidMovementError(
            f"Source model must be one of: {', '.join(sorted(SOURCE_MODELS))}."
        )
    if notes and len(notes) > MAX_MOVEMENT_NOTES_LENGTH:
        raise InvalidMovementError(
            f"Notes cannot exceed {MAX_MOVEMENT_NOTES_LENGTH} characters."
        )
    return kind


def _apply_movement(
    tx: TransactionContext,
    *,
    product_id: int,
    kind: MovementType,
    quantity: int,
    notes: str | None,
    source_document_id: int | None,
    source_model: str | None,
    acting_user_id: int,
) -> StockRecord:
    delta = kind.delta(quantity)

    stmt = (
        update(StockRecord)
        .where(StockRecord.product_id == product_id)
        .values(current_stock=StockRecord.current_stock + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if delta < 0:
        # Floor check travels with the decrement: the row only matches if the
        # result stays non-negative.
        stmt = stmt.where(StockRecord.current_stock >= quantity)
    else:
        # Ceiling check: the counter must stay within a 64-bit INTEGER.
        stmt = stmt.where(StockRecord.current_stock <= MAX_ID - quantity)

    result = tx.execute(stmt)

    if not result.rowcount:
        record = tx.session.query(StockRecord).filter_by(product_id=product_id).first()
        if record is None:
            current_app.logger.error(
                "Integrity violation: no stock record for product %s", product_id
            )
            raise StockRecordNotFoundError(product_id)
        if delta > 0:
            raise InvalidMovementError(
                "Stock level would exceed the maximum allowed quantity.",
                details={"product_id": product_id, "current_stock": record.current_stock},
            )
        product = tx.session.get(Product, product_id)
        raise InsufficientStockError(
            product_id,
            available=record.current_stock,
            requested=quantity,
            product_name=product.name if product else None,
        )

    record = (
        tx.session.query(StockRecord)
        .filter_by(product_id=product_id)
        .populate_existing()
        .one()
    )

    tx.add(StockMovement(
        stock_record_id=record.id,
        movement_type=kind.value,
        quantity=quantity,
        source_document_id=source_document_id,
        source_model=source_model,
        moved_by_user_id=acting_user_id,
        occurred_at=utcnow(),
        notes=notes or None,
    ))
    tx.flush()
    return record


def record_movement(
    product_id: int,
    movement_type,
    quantity: int,
    notes: str | None = None,
    source_document_id: int | None = None,
    source_model: str | None = None,
    acting_user_id: int | None = None,
    tx: TransactionContext | None = None,
) -> StockRecord:
    """
    Atomically apply a stock movement and append it to the history.

    Args:
        product_id: Product whose stock record is moved
        movement_type: MovementType (or its string value)
        quantity: Positive quantity; direction comes from movement_type
        notes: Free-text annotation (max 200 chars)
        source_document_id: Originating Sale/Purchase/Product id
        source_model: Which model source_document_id belongs to
        acting_user_id: User performing the movement (required)
        tx: Enclosing transaction. Without one, the movement runs in its own
            transaction and any applied delta is rolled back on failure.

    Returns:
        The updated StockRecord

    Raises:
        InvalidMovementError: Bad type/quantity/annotation
        StockRecordNotFoundError: No stock record for product_id
        InsufficientStockError: Decrement would make stock negative
    """
    kind = _validate_movement(movement_type, quantity, notes, source_model, acting_user_id)

    def _work(ctx: TransactionContext) -> StockRecord:
        return _apply_movement(
            ctx,
            product_id=product_id,
            kind=kind,
            quantity=quantity,
            notes=notes,
            source_document_id=source_document_id,
            source_model=source_model,
            acting_user_id=acting_user_id,
        )

    return run_in_transaction(_work, tx=tx)


def create_stock_record(
    tx: TransactionContext,
    *,
    product: Product,
    initial_stock: int,
    acting_user_id: int,
) -> StockRecord:
    """
    Create the stock record for a newly created product.

    A positive initial quantity goes through the ledger as an "adjustment"
    movement, so history and counter agree from the first row.
    """
    record = StockRecord(product_id=product.id, current_stock=0)
    tx.add(record)
    tx.flush()

    if initial_stock:
        record = _apply_movement(
            tx,
            product_id=product.id,
            kind=MovementType.ADJUSTMENT,
            quantity=initial_stock,
            notes="Initial stock upon product creation",
            source_document_id=product.id,
            source_model="Product",
            acting_user_id=acting_user_id,
        )
    return record


# =============================================================================
# Reads (owner-scoped)
# =============================================================================

def _owned_stock_query(owner_id: int):
    return (
        db.session.query(StockRecord)
        .join(Product, Product.id == StockRecord.product_id)
        .filter(Product.created_by_user_id == owner_id)
    )


def get_stock(owner_id: int, product_id: int) -> StockRecord:
    """Stock record for an owned product. Foreign and missing products look the same."""
    product = (
        db.session.query(Product)
        .filter_by(id=product_id, created_by_user_id=owner_id)
        .first()
    )
    if product is None:
        raise NotFoundError("Stock record not found or you lack permission.")

    record = db.session.query(StockRecord).filter_by(product_id=product_id).first()
    if record is None:
        current_app.logger.error(
            "Integrity violation: no stock record for product %s", product_id
        )
        raise StockRecordNotFoundError(product_id)
    return record


def get_current_stock(product_id: int) -> int | None:
    """Unscoped quantity lookup used by workflow pre-checks."""
    return (
        db.session.query(StockRecord.current_stock)
        .filter_by(product_id=product_id)
        .scalar()
    )


def list_stock(
    owner_id: int,
    *,
    stock_status: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[StockRecord], int]:
    """
    List stock records for an owner's products.

    stock_status:
    - low_stock: current_stock <= product.min_stock_level
    - out_of_stock: current_stock == 0
    - in_stock: current_stock > product.min_stock_level
    """
    query = _owned_stock_query(owner_id)

    if stock_status:
        if stock_status not in STOCK_STATUS_FILTERS:
            raise InvalidInputError(
                f"Invalid stock_status. Must be one of: {', '.join(sorted(STOCK_STATUS_FILTERS))}"
            )
        if stock_status == "low_stock":
            query = query.filter(StockRecord.current_stock <= Product.min_stock_level)
        elif stock_status == "out_of_stock":
            query = query.filter(StockRecord.current_stock == 0)
        else:
            query = query.filter(StockRecord.current_stock > Product.min_stock_level)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))

    total = query.count()
    records = (
        query.order_by(StockRecord.created_at.desc(), StockRecord.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return records, total


def get_movement_history(
    owner_id: int,
    product_id: int,
    *,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockMovement], int]:
    """Movement history for an owned product, newest first."""
    record = get_stock(owner_id, product_id)

    query = db.session.query(StockMovement).filter_by(stock_record_id=record.id)
    total = query.count()
    entries = (
        query.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return entries, total


def get_stock_summary(owner_id: int) -> dict:
    """Quantity and valuation totals across an owner's stock."""
    row = (
        db.session.query(
            func.coalesce(func.sum(StockRecord.current_stock), 0).label("total_items"),
            func.count(StockRecord.id).label("distinct_items"),
            func.coalesce(
                func.sum(StockRecord.current_stock * Product.purchase_price_cents), 0
            ).label("by_purchase"),
            func.coalesce(
                func.sum(StockRecord.current_stock * Product.selling_price_cents), 0
            ).label("by_selling"),
        )
        .join(Product, Product.id == StockRecord.product_id)
        .filter(Product.created_by_user_id == owner_id)
        .one()
    )
    return {
        "total_items": int(row.total_items or 0),
        "distinct_items": int(row.distinct_items or 0),
        "total_value_by_purchase_price_cents": int(row.by_purchase or 0),
        "total_value_by_selling_price_cents": int(row.by_selling or 0),
    }


def verify_stock_record(product_id: int) -> dict:
    """
    Recompute the quantity from the movement log and compare with the counter.

    The counter is authoritative for reads; the log exists for audit. A
    mismatch means something wrote current_stock outside record_movement().
    """
    record = db.session.query(StockRecord).filter_by(product_id=product_id).first()
    if record is None:
        raise StockRecordNotFoundError(product_id)

    expected = 0
    for kind, total in (
        db.session.query(StockMovement.movement_type, func.sum(StockMovement.quantity))
        .filter(StockMovement.stock_record_id == record.id)
        .group_by(StockMovement.movement_type)
    ):
        expected += MovementType(kind).delta(int(total))

    return {
        "product_id": product_id,
        "expected": expected,
        "actual": record.current_stock,
        "ok": expected == record.current_stock,
    }
