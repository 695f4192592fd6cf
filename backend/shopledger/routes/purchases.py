# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

"""
Purchase order routes.

LIFECYCLE: ordered -> received | cancelled. Only /receive touches stock.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import purchase_service
from ..errors import InventoryError
from ..decorators import require_user, pagination_args, id_query_arg


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_user
def create_purchase_route():
    """
    Create a purchase order in status "ordered".

    Body:
    {
        "supplier_id": 1,
        "items": [{"product_id": 1, "quantity": 50, "unit_cost_cents": 900}],
        "payment_method": "online",
        "notes": "..."   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        purchase = purchase_service.create_purchase(
            g.current_user.id,
            data.get("supplier_id"),
            data.get("items"),
            data.get("payment_method"),
            notes=data.get("notes"),
        )
        return jsonify({"purchase": purchase.to_dict()}), 201

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_user
def list_purchases_route():
    """Query params: supplier_id, purchase_status, limit, offset"""
    limit, offset = pagination_args()
    purchases, total = purchase_service.list_purchases(
        g.current_user.id,
        supplier_id=id_query_arg("supplier_id"),
        purchase_status=request.args.get("purchase_status"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "purchases": [p.to_dict() for p in purchases],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@purchases_bp.get("/<int:purchase_id>")
@require_user
def get_purchase_route(purchase_id: int):
    purchase = purchase_service.get_purchase(g.current_user.id, purchase_id)
    return jsonify({"purchase": purchase.to_dict()}), 200


@purchases_bp.patch("/<int:purchase_id>")
@require_user
def update_purchase_route(purchase_id: int):
    """Edit supplier, items, notes or payment method of an ordered purchase."""
    try:
        data = request.get_json(silent=True) or {}
        purchase = purchase_service.update_purchase(
            g.current_user.id,
            purchase_id,
            supplier_id=data.get("supplier_id"),
            items=data.get("items"),
            notes=data.get("notes"),
            payment_method=data.get("payment_method"),
        )
        return jsonify({"purchase": purchase.to_dict()}), 200

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to update purchase %s", purchase_id)
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/receive")
@require_user
def receive_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.receive_purchase(
            g.current_user.id, purchase_id, acting_user_id=g.current_user.id
        )
        return jsonify({"purchase": purchase.to_dict()}), 200

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to receive purchase %s", purchase_id)
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/cancel")
@require_user
def cancel_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.cancel_purchase(g.current_user.id, purchase_id)
        return jsonify({"purchase": purchase.to_dict()}), 200

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to cancel purchase %s", purchase_id)
        return jsonify({"error": "Internal server error"}), 500
