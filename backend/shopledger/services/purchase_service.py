# Overview: Purchase order lifecycle; receipt is the only step that touches stock.

"""
Purchase Service

LIFECYCLE:
    ordered -> received   (stock added, terminal)
    ordered -> cancelled  (no stock effect, terminal)

Ordered goods are never counted as on hand. Receipt records one "purchase"
movement per line in the same transaction that flips the status, so a
purchase is either fully received or not received at all.

Concurrent receipt of the same purchase is guarded by the row lock and the
version column: the loser replays, sees "received" and is rejected.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Purchase, PurchaseLine, MovementType
from ..models.documents import (
    PURCHASE_STATUS_ORDERED,
    PURCHASE_STATUS_RECEIVED,
    PURCHASE_STATUS_CANCELLED,
)
from ..models.sales import PAYMENT_METHODS
from ..errors import InvalidInputError, InvalidStateTransitionError, NotFoundError
from ..validation import parse_line_items, require_choice, LineItem
from shopledger.time_utils import utcnow
from .concurrency import lock_for_update
from .document_service import next_document_number, PURCHASE_DOCUMENT
from .products_service import require_active_product
from .supplier_service import require_active_supplier
from .stock_service import record_movement
from .transaction_service import run_in_transaction


PURCHASE_TRANSITIONS = {
    PURCHASE_STATUS_ORDERED: {PURCHASE_STATUS_RECEIVED, PURCHASE_STATUS_CANCELLED},
    PURCHASE_STATUS_RECEIVED: set(),
    PURCHASE_STATUS_CANCELLED: set(),
}


def _load_for_update(tx, owner_id: int, purchase_id: int) -> Purchase:
    purchase = lock_for_update(
        tx.session.query(Purchase).filter_by(id=purchase_id, created_by_user_id=owner_id)
    ).first()
    if not purchase:
        raise NotFoundError("Purchase not found.")
    return purchase


def _validate_lines(owner_id: int, items) -> list[LineItem]:
    lines = parse_line_items(items, amount_field="unit_cost_cents", document="purchase")
    for line in lines:
        require_active_product(owner_id, line.product_id)
    return lines


def _to_purchase_lines(lines: list[LineItem]) -> list[PurchaseLine]:
    return [
        PurchaseLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_cost_cents=line.unit_cents,
            total_cost_cents=line.total_cents,
        )
        for line in lines
    ]


def create_purchase(
    owner_id: int,
    supplier_id,
    items,
    payment_method: str,
    notes: str | None = None,
) -> Purchase:
    """
    Create a purchase order in status "ordered". Stock is not touched.

    Raises:
        InvalidInputError: Missing supplier, empty items, bad line values
        InvalidSupplierError: Supplier missing, inactive or not owned
        InvalidProductError: Line product missing, inactive or not owned
    """
    supplier = require_active_supplier(owner_id, supplier_id)
    require_choice(payment_method, PAYMENT_METHODS, "payment_method")
    lines = _validate_lines(owner_id, items)

    def _work(tx) -> Purchase:
        purchase_number = next_document_number(
            tx, owner_id=owner_id, document_type=PURCHASE_DOCUMENT, prefix="PO"
        )
        purchase = Purchase(
            created_by_user_id=owner_id,
            supplier_id=supplier.id,
            purchase_number=purchase_number,
            purchase_status=PURCHASE_STATUS_ORDERED,
            payment_method=payment_method,
            total_amount_cents=sum(line.total_cents for line in lines),
            order_date=utcnow(),
            notes=notes,
        )
        purchase.lines.extend(_to_purchase_lines(lines))
        tx.add(purchase)
        tx.flush()
        return purchase

    purchase = run_in_transaction(_work)
    current_app.logger.info(
        "Purchase %s ordered from supplier %s by owner %s",
        purchase.purchase_number, supplier.id, owner_id,
    )
    return purchase


def update_purchase(
    owner_id: int,
    purchase_id: int,
    *,
    supplier_id=None,
    items=None,
    notes=None,
    payment_method=None,
) -> Purchase:
    """
    Edit an ordered purchase. Received and cancelled purchases are frozen.

    items, when given, replaces all lines and recomputes the total.
    supplier_id, when given, must name an active supplier of the same owner.
    """
    supplier = require_active_supplier(owner_id, supplier_id) if supplier_id is not None else None
    if payment_method is not None:
        require_choice(payment_method, PAYMENT_METHODS, "payment_method")
    new_lines = _validate_lines(owner_id, items) if items is not None else None

    def _work(tx) -> Purchase:
        purchase = _load_for_update(tx, owner_id, purchase_id)
        if purchase.purchase_status != PURCHASE_STATUS_ORDERED:
            raise InvalidStateTransitionError(
                f"Cannot modify a purchase that is already {purchase.purchase_status}."
            )
        if supplier is not None:
            purchase.supplier = supplier
        if new_lines is not None:
            purchase.lines = _to_purchase_lines(new_lines)
            purchase.total_amount_cents = sum(line.total_cents for line in new_lines)
        if notes is not None:
            purchase.notes = notes
        if payment_method is not None:
            purchase.payment_method = payment_method
        tx.flush()
        return purchase

    return run_in_transaction(_work)


def receive_purchase(owner_id: int, purchase_id: int, acting_user_id: int | None = None) -> Purchase:
    """
    Mark an ordered purchase as received and add its quantities to stock.

    Raises:
        NotFoundError: Purchase missing or not owned
        InvalidStateTransitionError: Purchase is not in status "ordered"
    """
    actor = acting_user_id or owner_id

    def _work(tx) -> Purchase:
        purchase = _load_for_update(tx, owner_id, purchase_id)
        if PURCHASE_STATUS_RECEIVED not in PURCHASE_TRANSITIONS[purchase.purchase_status]:
            raise InvalidStateTransitionError(
                f"Cannot receive a purchase that is already {purchase.purchase_status}."
            )

        purchase.purchase_status = PURCHASE_STATUS_RECEIVED
        purchase.received_at = utcnow()
        purchase.received_by_user_id = actor
        tx.flush()

        for line in purchase.lines:
            record_movement(
                line.product_id,
                MovementType.PURCHASE,
                line.quantity,
                notes=f"Receipt for PO: {purchase.purchase_number}",
                source_document_id=purchase.id,
                source_model="Purchase",
                acting_user_id=actor,
                tx=tx,
            )
        return purchase

    purchase = run_in_transaction(_work)
    current_app.logger.info(
        "Purchase %s received by user %s; %d lines added to stock",
        purchase.purchase_number, actor, len(purchase.lines),
    )
    return purchase


def cancel_purchase(owner_id: int, purchase_id: int) -> Purchase:
    """Cancel an ordered purchase. No stock is touched."""

    def _work(tx) -> Purchase:
        purchase = _load_for_update(tx, owner_id, purchase_id)
        if purchase.purchase_status == PURCHASE_STATUS_RECEIVED:
            raise InvalidStateTransitionError("Cannot cancel a received purchase.")
        if purchase.purchase_status == PURCHASE_STATUS_CANCELLED:
            raise InvalidStateTransitionError("Purchase has already been cancelled.")

        purchase.purchase_status = PURCHASE_STATUS_CANCELLED
        purchase.cancelled_at = utcnow()
        tx.flush()
        return purchase

    purchase = run_in_transaction(_work)
    current_app.logger.info("Purchase %s cancelled", purchase.purchase_number)
    return purchase


def get_purchase(owner_id: int, purchase_id: int) -> Purchase:
    purchase = (
        db.session.query(Purchase)
        .options(selectinload(Purchase.lines))
        .filter_by(id=purchase_id, created_by_user_id=owner_id)
        .first()
    )
    if not purchase:
        raise NotFoundError("Purchase not found.")
    return purchase


def list_purchases(
    owner_id: int,
    *,
    supplier_id: int | None = None,
    purchase_status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Purchase], int]:
    """List an owner's purchases, newest first. Returns (purchases, total count)."""
    query = db.session.query(Purchase).filter(Purchase.created_by_user_id == owner_id)

    if supplier_id:
        query = query.filter(Purchase.supplier_id == supplier_id)
    if purchase_status:
        if purchase_status not in PURCHASE_TRANSITIONS:
            raise InvalidInputError(
                f"purchase_status must be one of: {', '.join(sorted(PURCHASE_TRANSITIONS))}"
            )
        query = query.filter(Purchase.purchase_status == purchase_status)

    total = query.count()
    purchases = (
        query.options(selectinload(Purchase.lines))
        .order_by(Purchase.order_date.desc(), Purchase.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return purchases, total
