# Overview: Pytest coverage for the stock ledger (record_movement and reads).

"""
Stock Ledger Tests

Verifies:
- Each movement type moves the counter in its own direction
- Decrements never drive stock below zero
- Every counter change appends exactly one history entry
- Counter equals the signed sum of its history (conservation)
- Invalid movement input is rejected before any write
"""

import pytest

from shopledger.errors import (
    InsufficientStockError,
    InvalidMovementError,
    NotFoundError,
    StockRecordNotFoundError,
)
from shopledger.models import StockMovement, StockRecord, MovementType
from shopledger.services import stock_service
from shopledger.validation import MAX_ID, MAX_QUANTITY


def _history(db_session, product_id):
    record = db_session.query(StockRecord).filter_by(product_id=product_id).one()
    return (
        db_session.query(StockMovement)
        .filter_by(stock_record_id=record.id)
        .order_by(StockMovement.id)
        .all()
    )


# =============================================================================
# MOVEMENT TYPES
# =============================================================================


class TestMovementType:
    def test_sale_is_the_only_decrement(self):
        assert MovementType.SALE.delta(4) == -4
        assert MovementType.PURCHASE.delta(4) == 4
        assert MovementType.RETURN.delta(4) == 4
        assert MovementType.ADJUSTMENT.delta(4) == 4

    def test_string_values(self):
        assert MovementType("purchase") is MovementType.PURCHASE
        assert MovementType.SALE == "sale"


# =============================================================================
# RECORD MOVEMENT
# =============================================================================


class TestRecordMovement:
    def test_initial_stock_is_an_adjustment(self, db_session, product_a, stock_of):
        """Product creation seeds stock through the ledger."""
        assert stock_of(product_a.id) == 100

        history = _history(db_session, product_a.id)
        assert len(history) == 1
        assert history[0].movement_type == "adjustment"
        assert history[0].quantity == 100
        assert history[0].source_model == "Product"
        assert history[0].source_document_id == product_a.id
        assert history[0].notes == "Initial stock upon product creation"

    def test_zero_initial_stock_has_no_history(self, db_session, owner_a, stock_of):
        from shopledger.services.products_service import create_product

        product, record = create_product(owner_a.id, name="Empty Box", sku="BOX-0")
        assert record.current_stock == 0
        assert stock_of(product.id) == 0
        assert _history(db_session, product.id) == []

    @pytest.mark.parametrize(
        "movement_type,expected",
        [("purchase", 110), ("return", 110), ("adjustment", 110), ("sale", 90)],
    )
    def test_direction_follows_type(self, owner_a, product_a, stock_of, movement_type, expected):
        record = stock_service.record_movement(
            product_a.id, movement_type, 10, acting_user_id=owner_a.id
        )
        assert record.current_stock == expected
        assert stock_of(product_a.id) == expected

    def test_appends_one_entry_per_change(self, db_session, owner_a, product_a):
        stock_service.record_movement(
            product_a.id, MovementType.SALE, 3,
            notes="Sale Invoice: INV-000009",
            source_document_id=9,
            source_model="Sale",
            acting_user_id=owner_a.id,
        )
        history = _history(db_session, product_a.id)
        assert len(history) == 2
        entry = history[-1]
        assert entry.movement_type == "sale"
        assert entry.quantity == 3
        assert entry.signed_quantity == -3
        assert entry.source_model == "Sale"
        assert entry.source_document_id == 9
        assert entry.moved_by_user_id == owner_a.id
        assert entry.notes == "Sale Invoice: INV-000009"

    def test_sale_down_to_exactly_zero(self, owner_a, product_a, stock_of):
        stock_service.record_movement(product_a.id, "sale", 100, acting_user_id=owner_a.id)
        assert stock_of(product_a.id) == 0

    def test_oversell_rejected_without_effect(self, db_session, owner_a, product_a, stock_of):
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.record_movement(product_a.id, "sale", 101, acting_user_id=owner_a.id)

        assert exc.value.available == 100
        assert exc.value.requested == 101
        assert "Blue Pen" in exc.value.message
        assert stock_of(product_a.id) == 100
        assert len(_history(db_session, product_a.id)) == 1

    def test_missing_stock_record(self, owner_a):
        with pytest.raises(StockRecordNotFoundError):
            stock_service.record_movement(999999, "purchase", 1, acting_user_id=owner_a.id)

    @pytest.mark.parametrize("quantity", [0, -5, 2.5, "3", True, None, MAX_QUANTITY + 1, 2**63 - 50])
    def test_quantity_must_be_positive_int(self, owner_a, product_a, stock_of, quantity):
        with pytest.raises(InvalidMovementError):
            stock_service.record_movement(product_a.id, "purchase", quantity, acting_user_id=owner_a.id)
        assert stock_of(product_a.id) == 100

    def test_unknown_type_rejected(self, owner_a, product_a):
        with pytest.raises(InvalidMovementError) as exc:
            stock_service.record_movement(product_a.id, "theft", 1, acting_user_id=owner_a.id)
        assert "'purchase'" in exc.value.message

    def test_acting_user_required(self, product_a):
        with pytest.raises(InvalidMovementError):
            stock_service.record_movement(product_a.id, "purchase", 1)

    def test_notes_length_limit(self, owner_a, product_a):
        with pytest.raises(InvalidMovementError):
            stock_service.record_movement(
                product_a.id, "purchase", 1, notes="x" * 201, acting_user_id=owner_a.id
            )
        stock_service.record_movement(
            product_a.id, "purchase", 1, notes="x" * 200, acting_user_id=owner_a.id
        )

    def test_unknown_source_model_rejected(self, owner_a, product_a):
        with pytest.raises(InvalidMovementError):
            stock_service.record_movement(
                product_a.id, "purchase", 1, source_model="Invoice", acting_user_id=owner_a.id
            )


# =============================================================================
# CONSERVATION
# =============================================================================


class TestConservation:
    def test_counter_matches_history(self, db_session, owner_a, product_a):
        for kind, qty in [("sale", 30), ("purchase", 12), ("return", 5), ("sale", 87)]:
            stock_service.record_movement(product_a.id, kind, qty, acting_user_id=owner_a.id)

        result = stock_service.verify_stock_record(product_a.id)
        assert result["ok"] is True
        assert result["actual"] == 0
        assert sum(m.signed_quantity for m in _history(db_session, product_a.id)) == 0

    def test_verify_detects_out_of_band_write(self, db_session, product_a):
        record = db_session.query(StockRecord).filter_by(product_id=product_a.id).one()
        record.current_stock = 7
        db_session.commit()

        result = stock_service.verify_stock_record(product_a.id)
        assert result == {"product_id": product_a.id, "expected": 100, "actual": 7, "ok": False}

    def test_increment_past_ceiling_rejected(self, db_session, owner_a, product_a, stock_of):
        record = db_session.query(StockRecord).filter_by(product_id=product_a.id).one()
        record.current_stock = MAX_ID - 10
        db_session.commit()

        with pytest.raises(InvalidMovementError):
            stock_service.record_movement(product_a.id, "purchase", 11, acting_user_id=owner_a.id)
        assert stock_of(product_a.id) == MAX_ID - 10
        assert len(_history(db_session, product_a.id)) == 1

        stock_service.record_movement(product_a.id, "purchase", 10, acting_user_id=owner_a.id)
        assert stock_of(product_a.id) == MAX_ID


# =============================================================================
# READS
# =============================================================================


class TestReads:
    def test_get_stock_repeatable(self, owner_a, product_a):
        first = stock_service.get_stock(owner_a.id, product_a.id).current_stock
        second = stock_service.get_stock(owner_a.id, product_a.id).current_stock
        assert first == second == 100

    def test_get_stock_foreign_owner(self, owner_b, product_a):
        with pytest.raises(NotFoundError):
            stock_service.get_stock(owner_b.id, product_a.id)

    def test_history_newest_first(self, owner_a, product_a):
        stock_service.record_movement(product_a.id, "sale", 1, acting_user_id=owner_a.id)
        stock_service.record_movement(product_a.id, "purchase", 2, acting_user_id=owner_a.id)

        entries, total = stock_service.get_movement_history(owner_a.id, product_a.id)
        assert total == 3
        assert [e.movement_type for e in entries] == ["purchase", "sale", "adjustment"]

    def test_list_stock_status_filters(self, owner_a, product_a, product_a2):
        # product_a: 100 on hand, min 10; product_a2: 5 on hand, min 10
        low, _ = stock_service.list_stock(owner_a.id, stock_status="low_stock")
        assert [r.product_id for r in low] == [product_a2.id]

        healthy, _ = stock_service.list_stock(owner_a.id, stock_status="in_stock")
        assert [r.product_id for r in healthy] == [product_a.id]

        stock_service.record_movement(product_a2.id, "sale", 5, acting_user_id=owner_a.id)
        empty, total = stock_service.list_stock(owner_a.id, stock_status="out_of_stock")
        assert total == 1
        assert empty[0].product_id == product_a2.id

    def test_list_stock_search(self, owner_a, product_a, product_a2):
        records, total = stock_service.list_stock(owner_a.id, search="pen")
        # "Blue Pen" and "Red Pencil" both match by name
        assert total == 2
        records, total = stock_service.list_stock(owner_a.id, search="PCL")
        assert [r.product_id for r in records] == [product_a2.id]

    def test_summary(self, owner_a, product_a, product_a2, product_b):
        summary = stock_service.get_stock_summary(owner_a.id)
        assert summary == {
            "total_items": 105,
            "distinct_items": 2,
            "total_value_by_purchase_price_cents": 100 * 900,
            "total_value_by_selling_price_cents": 100 * 2000 + 5 * 150,
        }
