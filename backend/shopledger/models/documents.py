from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


PURCHASE_STATUS_ORDERED = "ordered"
PURCHASE_STATUS_RECEIVED = "received"
PURCHASE_STATUS_CANCELLED = "cancelled"


class Purchase(db.Model):
    """
    Purchase order from a supplier.

    LIFECYCLE:
    1. ordered: Created, no stock effect
    2. received: Stock added via "purchase" movements (terminal)
    3. cancelled: Cancelled before receipt, no stock effect (terminal)

    Ordered-but-not-arrived inventory is never counted as on hand.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("created_by_user_id", "purchase_number", name="uq_purchases_owner_number"),
        db.Index("ix_purchases_owner_status", "created_by_user_id", "purchase_status"),
        db.Index("ix_purchases_supplier", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)

    # Human-readable document number (e.g., "PO-000042")
    purchase_number = db.Column(db.String(32), nullable=False)

    purchase_status = db.Column(db.String(16), nullable=False, default=PURCHASE_STATUS_ORDERED, index=True)

    payment_method = db.Column(db.String(16), nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.String(500), nullable=True)

    # Lifecycle timestamps
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    lines = db.relationship(
        "PurchaseLine",
        back_populates="purchase",
        order_by="PurchaseLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} number={self.purchase_number!r} status={self.purchase_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_number": self.purchase_number,
            "purchase_status": self.purchase_status,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "order_date": to_utc_z(self.order_date),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "received_by_user_id": self.received_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "version_id": self.version_id,
            "items": [line.to_dict() for line in self.lines],
        }


class PurchaseLine(db.Model):
    """Individual line items on a purchase order."""
    __tablename__ = "purchase_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_purchase_lines_quantity"),
        db.CheckConstraint("unit_cost_cents >= 0", name="ck_purchase_lines_unit_cost"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    purchase = db.relationship("Purchase", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "total_cost_cents": self.total_cost_cents,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-owner document sequences.

    WHY: Prevent race conditions when generating invoice and purchase
    numbers. Numbers are unique per owner but may have gaps after an
    aborted transaction.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "document_type", name="uq_doc_sequences_owner_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
