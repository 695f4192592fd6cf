# Overview: Service-layer operations for document numbering; encapsulates database work.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update, insert

from ..models import DocumentSequence
from ..errors import InvalidInputError
from .transaction_service import TransactionContext


SALE_DOCUMENT = "SALE"
PURCHASE_DOCUMENT = "PURCHASE"


def _insert_ignoring_conflict(tx: TransactionContext, owner_id: int, document_type: str) -> None:
    values = {"owner_id": owner_id, "document_type": document_type, "next_number": 1}
    dialect = tx.session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    else:
        tx.execute(insert(DocumentSequence).values(**values))
        return
    stmt = dialect_insert(DocumentSequence).values(**values).on_conflict_do_nothing(
        index_elements=["owner_id", "document_type"]
    )
    tx.execute(stmt)


def next_document_number(
    tx: TransactionContext,
    *,
    owner_id: int,
    document_type: str,
    prefix: str,
    pad: int | None = None,
) -> str:
    """
    Atomically allocate the next document number for an owner/type.

    Uses an atomic increment on the (owner_id, document_type) counter row, so
    no scan of existing numbers is needed and concurrent callers never get
    the same number. Runs inside the caller's transaction: an aborted
    transaction releases its number.
    """
    if not owner_id:
        raise InvalidInputError("owner_id is required")
    if not document_type:
        raise InvalidInputError("document_type is required")
    if pad is None:
        pad = current_app.config.get("DOCUMENT_NUMBER_PAD", 6)

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.owner_id == owner_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = tx.execute(stmt)
    if not result.rowcount:
        # First document of this type for the owner; a concurrent creator may
        # win the insert, in which case ours is a no-op.
        _insert_ignoring_conflict(tx, owner_id, document_type)
        tx.execute(stmt)

    current = (
        tx.session.query(DocumentSequence.next_number)
        .filter_by(owner_id=owner_id, document_type=document_type)
        .scalar()
    )
    return f"{prefix}-{current - 1:0{pad}d}"
