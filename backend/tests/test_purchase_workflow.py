# Overview: Pytest coverage for the purchase order lifecycle.

"""
Purchase Workflow Tests

Verifies:
- Ordered purchases never affect stock
- Receipt adds every line to stock exactly once
- Terminal states (received, cancelled) are closed
- Supplier and product validation on create
"""

import pytest
from sqlalchemy import update

from shopledger.errors import (
    InvalidInputError,
    InvalidMovementError,
    InvalidProductError,
    InvalidStateTransitionError,
    InvalidSupplierError,
    NotFoundError,
)
from shopledger.models import Purchase, StockMovement, StockRecord
from shopledger.services import purchase_service
from shopledger.services.purchase_service import PURCHASE_TRANSITIONS
from shopledger.services.supplier_service import deactivate_supplier, create_supplier
from shopledger.validation import MAX_ID, MAX_PRICE_CENTS, MAX_QUANTITY


def _item(product, quantity, cost=900):
    return {"product_id": product.id, "quantity": quantity, "unit_cost_cents": cost}


class TestTransitionTable:
    def test_terminal_states_are_closed(self):
        assert PURCHASE_TRANSITIONS["received"] == set()
        assert PURCHASE_TRANSITIONS["cancelled"] == set()
        assert PURCHASE_TRANSITIONS["ordered"] == {"received", "cancelled"}


# =============================================================================
# CREATE / UPDATE
# =============================================================================


class TestCreatePurchase:
    def test_ordered_purchase_has_no_stock_effect(self, owner_a, supplier_a, product_a, stock_of):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 50)], "online"
        )

        assert purchase.purchase_number == "PO-000001"
        assert purchase.purchase_status == "ordered"
        assert purchase.total_amount_cents == 50 * 900
        assert stock_of(product_a.id) == 100

    def test_supplier_required(self, owner_a, product_a):
        with pytest.raises(InvalidInputError) as exc:
            purchase_service.create_purchase(owner_a.id, None, [_item(product_a, 1)], "cash")
        assert exc.value.message == "Supplier is required."

    def test_inactive_supplier_rejected(self, owner_a, supplier_a, product_a):
        deactivate_supplier(owner_a.id, supplier_a.id)
        with pytest.raises(InvalidSupplierError):
            purchase_service.create_purchase(owner_a.id, supplier_a.id, [_item(product_a, 1)], "cash")

    def test_foreign_supplier_rejected(self, owner_b, supplier_a, product_b):
        with pytest.raises(InvalidSupplierError):
            purchase_service.create_purchase(owner_b.id, supplier_a.id, [_item(product_b, 1)], "cash")

    def test_foreign_product_rejected(self, owner_a, supplier_a, product_b):
        with pytest.raises(InvalidProductError):
            purchase_service.create_purchase(owner_a.id, supplier_a.id, [_item(product_b, 1)], "cash")

    def test_empty_items_rejected(self, owner_a, supplier_a):
        with pytest.raises(InvalidInputError) as exc:
            purchase_service.create_purchase(owner_a.id, supplier_a.id, [], "cash")
        assert exc.value.message == "A purchase must include at least one item."

    def test_update_replaces_lines(self, owner_a, supplier_a, product_a, product_a2):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 5)], "cash"
        )
        updated = purchase_service.update_purchase(
            owner_a.id, purchase.id,
            items=[_item(product_a2, 4, 100), _item(product_a, 1, 900)],
            notes="Revised order",
        )
        assert [(line.product_id, line.quantity) for line in updated.lines] == [
            (product_a2.id, 4), (product_a.id, 1),
        ]
        assert updated.total_amount_cents == 4 * 100 + 900
        assert updated.notes == "Revised order"

    @pytest.mark.parametrize("quantity", [MAX_QUANTITY + 1, 10**13, 2**63 - 50])
    def test_quantity_upper_bound(self, db_session, owner_a, supplier_a, product_a, quantity):
        with pytest.raises(InvalidInputError):
            purchase_service.create_purchase(
                owner_a.id, supplier_a.id, [_item(product_a, quantity, MAX_PRICE_CENTS)], "cash"
            )
        assert db_session.query(Purchase).count() == 0

    def test_total_upper_bound(self, owner_a, supplier_a, product_a, product_a2):
        items = [_item(product_a, MAX_QUANTITY, MAX_PRICE_CENTS), _item(product_a2, 1, 1)]
        with pytest.raises(InvalidInputError) as exc:
            purchase_service.create_purchase(owner_a.id, supplier_a.id, items, "cash")
        assert exc.value.message == "The purchase total exceeds the maximum allowed amount."

    def test_update_changes_supplier(self, owner_a, supplier_a, product_a):
        other = create_supplier(owner_a.id, name="Beta Supply", email="beta@supply.test", phone="5550100002")
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 5)], "cash"
        )

        updated = purchase_service.update_purchase(owner_a.id, purchase.id, supplier_id=other.id)
        assert updated.supplier_id == other.id
        assert updated.to_dict()["supplier_name"] == "Beta Supply"
        assert purchase_service.get_purchase(owner_a.id, purchase.id).supplier_id == other.id

    def test_update_rejects_inactive_supplier(self, owner_a, supplier_a, product_a):
        other = create_supplier(owner_a.id, name="Beta Supply", email="beta@supply.test", phone="5550100002")
        deactivate_supplier(owner_a.id, other.id)
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 5)], "cash"
        )

        with pytest.raises(InvalidSupplierError):
            purchase_service.update_purchase(owner_a.id, purchase.id, supplier_id=other.id)
        assert purchase_service.get_purchase(owner_a.id, purchase.id).supplier_id == supplier_a.id

    def test_update_rejects_foreign_supplier(self, owner_a, owner_b, supplier_a, product_a):
        foreign = create_supplier(owner_b.id, name="Beta Supply", email="beta@supply.test", phone="5550100002")
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 5)], "cash"
        )

        with pytest.raises(InvalidSupplierError):
            purchase_service.update_purchase(owner_a.id, purchase.id, supplier_id=foreign.id)
        assert purchase_service.get_purchase(owner_a.id, purchase.id).supplier_id == supplier_a.id


# =============================================================================
# RECEIVE / CANCEL
# =============================================================================


class TestReceivePurchase:
    def test_receive_adds_stock(self, db_session, owner_a, supplier_a, product_a, product_a2, stock_of):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 50), _item(product_a2, 20)], "online"
        )
        received = purchase_service.receive_purchase(owner_a.id, purchase.id)

        assert received.purchase_status == "received"
        assert received.received_at is not None
        assert received.received_by_user_id == owner_a.id
        assert stock_of(product_a.id) == 150
        assert stock_of(product_a2.id) == 25

        movements = db_session.query(StockMovement).filter_by(movement_type="purchase").all()
        assert len(movements) == 2
        assert all(m.notes == "Receipt for PO: PO-000001" for m in movements)
        assert all(m.source_model == "Purchase" for m in movements)

    def test_receive_twice_rejected(self, owner_a, supplier_a, product_a, stock_of):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 50)], "cash"
        )
        purchase_service.receive_purchase(owner_a.id, purchase.id)

        with pytest.raises(InvalidStateTransitionError) as exc:
            purchase_service.receive_purchase(owner_a.id, purchase.id)
        assert exc.value.message == "Cannot receive a purchase that is already received."
        assert stock_of(product_a.id) == 150

    def test_cancelled_cannot_be_received(self, owner_a, supplier_a, product_a, stock_of):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 50)], "cash"
        )
        purchase_service.cancel_purchase(owner_a.id, purchase.id)

        with pytest.raises(InvalidStateTransitionError) as exc:
            purchase_service.receive_purchase(owner_a.id, purchase.id)
        assert exc.value.message == "Cannot receive a purchase that is already cancelled."
        assert stock_of(product_a.id) == 100

    def test_received_cannot_be_cancelled(self, owner_a, supplier_a, product_a):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 1)], "cash"
        )
        purchase_service.receive_purchase(owner_a.id, purchase.id)

        with pytest.raises(InvalidStateTransitionError) as exc:
            purchase_service.cancel_purchase(owner_a.id, purchase.id)
        assert exc.value.message == "Cannot cancel a received purchase."

    def test_cancel_twice_rejected(self, owner_a, supplier_a, product_a):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 1)], "cash"
        )
        purchase_service.cancel_purchase(owner_a.id, purchase.id)

        with pytest.raises(InvalidStateTransitionError) as exc:
            purchase_service.cancel_purchase(owner_a.id, purchase.id)
        assert exc.value.message == "Purchase has already been cancelled."

    def test_received_purchase_is_frozen(self, owner_a, supplier_a, product_a):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 1)], "cash"
        )
        purchase_service.receive_purchase(owner_a.id, purchase.id)

        with pytest.raises(InvalidStateTransitionError):
            purchase_service.update_purchase(owner_a.id, purchase.id, notes="late edit")

    def test_receive_with_inactive_supplier(self, owner_a, supplier_a, product_a, stock_of):
        """Supplier status is only checked when the order is placed."""
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 10)], "cash"
        )
        deactivate_supplier(owner_a.id, supplier_a.id)

        purchase_service.receive_purchase(owner_a.id, purchase.id)
        assert stock_of(product_a.id) == 110

    def test_unknown_purchase(self, owner_a):
        with pytest.raises(NotFoundError):
            purchase_service.receive_purchase(owner_a.id, 123456)

    def test_receipt_past_counter_ceiling_rejected(self, db_session, owner_a, supplier_a, product_a, stock_of):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 50)], "cash"
        )
        db_session.execute(
            update(StockRecord).where(StockRecord.product_id == product_a.id).values(current_stock=MAX_ID - 10)
        )
        db_session.commit()

        with pytest.raises(InvalidMovementError):
            purchase_service.receive_purchase(owner_a.id, purchase.id)

        assert stock_of(product_a.id) == MAX_ID - 10
        assert isinstance(stock_of(product_a.id), int)
        assert purchase_service.get_purchase(owner_a.id, purchase.id).purchase_status == "ordered"
        assert db_session.query(StockMovement).filter_by(movement_type="purchase").count() == 0


class TestPurchaseReads:
    def test_list_filters(self, owner_a, supplier_a, product_a):
        other = create_supplier(owner_a.id, name="Beta Supply", email="beta@supply.test", phone="5550100002")
        p1 = purchase_service.create_purchase(owner_a.id, supplier_a.id, [_item(product_a, 1)], "cash")
        purchase_service.create_purchase(owner_a.id, other.id, [_item(product_a, 1)], "cash")
        purchase_service.receive_purchase(owner_a.id, p1.id)

        _, total = purchase_service.list_purchases(owner_a.id)
        assert total == 2

        rows, total = purchase_service.list_purchases(owner_a.id, supplier_id=other.id)
        assert total == 1 and rows[0].supplier_id == other.id

        rows, _ = purchase_service.list_purchases(owner_a.id, purchase_status="received")
        assert [p.id for p in rows] == [p1.id]

        with pytest.raises(InvalidInputError):
            purchase_service.list_purchases(owner_a.id, purchase_status="shipped")

    def test_get_purchase_payload(self, owner_a, supplier_a, product_a):
        purchase = purchase_service.create_purchase(
            owner_a.id, supplier_a.id, [_item(product_a, 3)], "online"
        )
        data = purchase_service.get_purchase(owner_a.id, purchase.id).to_dict()
        assert data["supplier_name"] == "Acme Wholesale"
        assert data["items"][0]["total_cost_cents"] == 2700
