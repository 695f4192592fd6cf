# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

MULTI-TENANT: Suppliers are scoped to their owner via created_by_user_id.
Email and phone are unique per owner.

Purchases require an active, owned supplier on the header.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Supplier
from ..errors import InvalidInputError, InvalidSupplierError, InvalidStateTransitionError, NotFoundError, DuplicateKeyError
from ..validation import EMAIL_RE, PHONE_RE, require_id
from .concurrency import lock_for_update
from .transaction_service import run_in_transaction


def create_supplier(
    owner_id: int,
    *,
    name: str,
    email: str,
    phone: str,
    notes: str | None = None,
) -> Supplier:
    """
    Create a new supplier for an owner.

    Raises:
        InvalidInputError: Missing name, malformed email or phone
        DuplicateKeyError: Email or phone already used by this owner
    """
    name = (name or "").strip()
    if len(name) < 2:
        raise InvalidInputError("Supplier name must be at least 2 characters")

    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise InvalidInputError("Supplier email is not valid")

    phone = (phone or "").strip()
    if not PHONE_RE.match(phone):
        raise InvalidInputError(f"{phone} is not a valid phone number! Must be exactly 10 digits.")

    existing = db.session.query(Supplier).filter(
        Supplier.created_by_user_id == owner_id,
        (Supplier.email == email) | (Supplier.phone == phone),
    ).first()
    if existing:
        field = "email" if existing.email == email else "phone"
        raise DuplicateKeyError(f"A supplier with this {field} already exists.")

    def _work(tx):
        supplier = Supplier(
            created_by_user_id=owner_id,
            name=name,
            email=email,
            phone=phone,
            notes=notes,
            is_active=True,
        )
        tx.add(supplier)
        tx.flush()
        return supplier

    return run_in_transaction(_work)


def require_active_supplier(owner_id: int, supplier_id) -> Supplier:
    """Supplier lookup used by purchase validation."""
    if not supplier_id:
        raise InvalidInputError("Supplier is required.")
    supplier_id = require_id(supplier_id, "supplier_id")
    supplier = (
        db.session.query(Supplier)
        .filter_by(id=supplier_id, created_by_user_id=owner_id)
        .first()
    )
    if not supplier or not supplier.is_active:
        raise InvalidSupplierError(
            "Invalid or inactive supplier provided.",
            details={"supplier_id": supplier_id},
        )
    return supplier


def deactivate_supplier(owner_id: int, supplier_id: int) -> Supplier:
    def _work(tx):
        supplier = lock_for_update(
            tx.session.query(Supplier).filter_by(id=supplier_id, created_by_user_id=owner_id)
        ).populate_existing().first()
        if not supplier:
            raise NotFoundError("Supplier not found.")
        if not supplier.is_active:
            raise InvalidStateTransitionError("Supplier is already inactive.")
        supplier.is_active = False
        tx.flush()
        return supplier

    return run_in_transaction(_work)
