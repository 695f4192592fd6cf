from __future__ import annotations

import enum

from ..extensions import db
from shopledger.time_utils import to_utc_z


PRODUCT_UNITS = {
    "piece", "kg", "gram", "liter", "ml", "meter",
    "cm", "box", "pack", "dozen", "pair", "set",
}

# Models a movement's source_document_id may point at
SOURCE_MODELS = {"Purchase", "Sale", "Product", "Adjustment"}

MAX_MOVEMENT_NOTES_LENGTH = 200


class MovementType(str, enum.Enum):
    """
    Reason for a stock movement.

    The stored quantity is always positive; the direction is a property of
    the type, never of the stored value.
    """
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    RETURN = "return"

    @property
    def sign(self) -> int:
        return -1 if self is MovementType.SALE else 1

    def delta(self, quantity: int) -> int:
        return self.sign * quantity


class Supplier(db.Model):
    """
    Supplier master data.

    MULTI-TENANT: Suppliers are scoped to their owner via created_by_user_id.
    Email and phone are unique per owner, not globally.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("created_by_user_id", "email", name="uq_suppliers_owner_email"),
        db.UniqueConstraint("created_by_user_id", "phone", name="uq_suppliers_owner_phone"),
        db.Index("ix_suppliers_owner_active", "created_by_user_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(10), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r} owner={self.created_by_user_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "is_active": self.is_active,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to their owner via created_by_user_id.
    SKUs are stored uppercase and unique per owner.

    LIFECYCLE: Products are soft-deactivated (is_active=False) and never
    hard-deleted once a stock record exists for them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("created_by_user_id", "sku", name="uq_products_owner_sku"),
        db.Index("ix_products_owner_name", "created_by_user_id", "name"),
        db.Index("ix_products_owner_active", "created_by_user_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    sku = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="piece")

    # Authoritative storage in cents
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    min_stock_level = db.Column(db.Integer, nullable=False, default=10)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} owner={self.created_by_user_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "purchase_price_cents": self.purchase_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "min_stock_level": self.min_stock_level,
            "is_active": self.is_active,
            "supplier_id": self.supplier_id,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockRecord(db.Model):
    """
    The single authoritative quantity on hand for a product.

    INVARIANTS:
    - Exactly one row per product (product_id unique).
    - current_stock >= 0, enforced by the ledger's conditional update and
      backed by a CHECK constraint.
    - current_stock is only ever changed by stock_service.record_movement,
      always together with an appended StockMovement.

    No version_id_col here: the counter is mutated by atomic UPDATE
    statements, not by flushing ORM state.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_stock_records_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, unique=True, index=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("stock_record", uselist=False, lazy=True))
    movement_history = db.relationship(
        "StockMovement",
        back_populates="stock_record",
        order_by="StockMovement.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<StockRecord product_id={self.product_id} current_stock={self.current_stock}>"

    def to_dict(self, include_history: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "current_stock": self.current_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_history:
            data["movement_history"] = [m.to_dict() for m in self.movement_history]
        return data


class StockMovement(db.Model):
    """
    One entry in a stock record's movement history.

    Append-only: rows are never updated or deleted. Insertion (id) order is
    chronological order. Not addressable on its own; always read through its
    stock record.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_stock_movements_positive_quantity"),
        db.Index("ix_stock_movements_record_occurred", "stock_record_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_record_id = db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # Audit traceability back to the originating document
    source_document_id = db.Column(db.Integer, nullable=True)
    source_model = db.Column(db.String(16), nullable=True)

    moved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.String(MAX_MOVEMENT_NOTES_LENGTH), nullable=True)

    stock_record = db.relationship("StockRecord", back_populates="movement_history")
    moved_by = db.relationship("User", foreign_keys=[moved_by_user_id])

    @property
    def signed_quantity(self) -> int:
        return MovementType(self.movement_type).delta(self.quantity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "source_document_id": self.source_document_id,
            "source_model": self.source_model,
            "moved_by_user_id": self.moved_by_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "notes": self.notes,
        }
