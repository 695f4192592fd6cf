"""
Sales Service - ledger-backed sale processing

WHY: A sale and its stock deductions are one unit. The Sale row and one
"sale" movement per line commit together or not at all; cancelling restores
stock with "return" movements in the same way.

Stock sufficiency is pre-checked before the transaction opens. The ledger's
conditional decrement is the enforcement point: a late InsufficientStockError
from inside the transaction is expected under concurrency.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Sale, SaleLine, MovementType
from ..models.sales import PAYMENT_METHODS, SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED
from ..errors import (
    InsufficientStockError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
    StockRecordNotFoundError,
)
from ..validation import parse_line_items, require_choice, LineItem
from shopledger.time_utils import utcnow, normalize_datetime
from .concurrency import lock_for_update
from .document_service import next_document_number, SALE_DOCUMENT
from .products_service import require_active_product
from .stock_service import record_movement, get_current_stock
from .transaction_service import run_in_transaction


def _parse_sale_date(value) -> datetime | None:
    try:
        return normalize_datetime(value)
    except ValueError:
        raise InvalidInputError("Invalid sale_date format") from None


def _validate_on_hand(owner_id: int, lines: list[LineItem]) -> None:
    """Early-exit stock check, aggregated per product across lines."""
    requested: dict[int, int] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    for product_id, qty in requested.items():
        product = require_active_product(owner_id, product_id)
        on_hand = get_current_stock(product_id)
        if on_hand is None:
            current_app.logger.error(
                "Integrity violation: no stock record for product %s", product_id
            )
            raise StockRecordNotFoundError(product_id)
        if on_hand < qty:
            raise InsufficientStockError(
                product_id,
                available=on_hand,
                requested=qty,
                product_name=product.name,
            )


def create_sale(
    owner_id: int,
    items,
    payment_method: str,
    sale_date=None,
    notes: str | None = None,
) -> Sale:
    """
    Create a sale and deduct its stock atomically.

    Args:
        owner_id: Owning (and acting) user
        items: [{"product_id", "quantity", "unit_price_cents"}, ...]
        payment_method: "cash" or "online"
        sale_date: Optional business date (defaults to now)
        notes: Optional free text

    Returns:
        The committed Sale

    Raises:
        InvalidInputError: Empty items, bad quantity/price, bad payment method
        InvalidProductError: Product missing, inactive or not owned
        InsufficientStockError: Pre-check or ledger rejection
    """
    if not payment_method:
        raise InvalidInputError("Payment method is required.")
    require_choice(payment_method, PAYMENT_METHODS, "payment_method")
    lines = parse_line_items(items, amount_field="unit_price_cents", document="sale")
    sale_dt = _parse_sale_date(sale_date)

    _validate_on_hand(owner_id, lines)

    def _work(tx) -> Sale:
        invoice_number = next_document_number(
            tx, owner_id=owner_id, document_type=SALE_DOCUMENT, prefix="INV"
        )
        sale = Sale(
            created_by_user_id=owner_id,
            invoice_number=invoice_number,
            status=SALE_STATUS_COMPLETED,
            payment_method=payment_method,
            total_amount_cents=sum(line.total_cents for line in lines),
            sale_date=sale_dt or utcnow(),
            notes=notes,
        )
        for line in lines:
            sale.lines.append(SaleLine(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_cents,
                total_price_cents=line.total_cents,
            ))
        tx.add(sale)
        tx.flush()

        for line in sale.lines:
            record_movement(
                line.product_id,
                MovementType.SALE,
                line.quantity,
                notes=f"Sale Invoice: {sale.invoice_number}",
                source_document_id=sale.id,
                source_model="Sale",
                acting_user_id=owner_id,
                tx=tx,
            )
        return sale

    sale = run_in_transaction(_work)
    current_app.logger.info(
        "Sale %s created for owner %s: %d lines, total %d cents",
        sale.invoice_number, owner_id, len(lines), sale.total_amount_cents,
    )
    return sale


def cancel_sale(owner_id: int, sale_id: int, acting_user_id: int | None = None) -> None:
    """
    Cancel a sale: restore its stock and retire the document.

    The sale row is kept with status="cancelled" for audit, alongside the
    compensating "return" movements; it no longer shows up in get_sale or
    list_sales.

    Raises:
        NotFoundError: Sale missing or not owned
        InvalidStateTransitionError: Sale already cancelled
    """
    actor = acting_user_id or owner_id

    def _work(tx) -> Sale:
        sale = lock_for_update(
            tx.session.query(Sale).filter_by(id=sale_id, created_by_user_id=owner_id)
        ).first()
        if not sale:
            raise NotFoundError("Sale not found.")
        if sale.status == SALE_STATUS_CANCELLED:
            raise InvalidStateTransitionError("Sale has already been cancelled.")

        for line in sale.lines:
            record_movement(
                line.product_id,
                MovementType.RETURN,
                line.quantity,
                notes=f"Cancellation for INV: {sale.invoice_number}",
                source_document_id=sale.id,
                source_model="Sale",
                acting_user_id=actor,
                tx=tx,
            )

        sale.status = SALE_STATUS_CANCELLED
        sale.cancelled_at = utcnow()
        sale.cancelled_by_user_id = actor
        tx.flush()
        return sale

    sale = run_in_transaction(_work)
    current_app.logger.info(
        "Sale %s cancelled by user %s; stock restored", sale.invoice_number, actor
    )


def get_sale(owner_id: int, sale_id: int) -> Sale:
    """Completed sale owned by owner_id. Cancelled sales are not retrievable."""
    sale = (
        db.session.query(Sale)
        .options(selectinload(Sale.lines))
        .filter_by(id=sale_id, created_by_user_id=owner_id, status=SALE_STATUS_COMPLETED)
        .first()
    )
    if not sale:
        raise NotFoundError("Sale not found.")
    return sale


def list_sales(
    owner_id: int,
    *,
    payment_method: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    """
    List completed sales for an owner, newest first.

    Args:
        payment_method: Filter by payment method
        start_date: sale_date >= start_date
        end_date: sale_date <= end_date
        search: Case-insensitive match on invoice number

    Returns:
        Tuple of (list of sales, total count)
    """
    query = db.session.query(Sale).filter(
        Sale.created_by_user_id == owner_id,
        Sale.status == SALE_STATUS_COMPLETED,
    )

    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)
    if start_date:
        query = query.filter(Sale.sale_date >= start_date)
    if end_date:
        query = query.filter(Sale.sale_date <= end_date)
    if search:
        query = query.filter(Sale.invoice_number.ilike(f"%{search.strip()}%"))

    total = query.count()

    query = query.options(selectinload(Sale.lines))
    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    query = query.offset(offset).limit(limit)

    return query.all(), total
