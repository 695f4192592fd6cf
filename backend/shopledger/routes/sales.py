# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopledger/routes/sales.py
"""
Sales API routes.

MULTI-TENANT: Every route acts on behalf of g.current_user (set by
@require_user); sales owned by other users behave as missing.

Business failures raised by the service (InventoryError subclasses) are
re-raised to the app-wide error handler.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..errors import InventoryError, InvalidInputError
from ..decorators import require_user, pagination_args
from shopledger.time_utils import normalize_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _date_arg(name: str):
    try:
        return normalize_datetime(request.args.get(name) or None)
    except ValueError:
        raise InvalidInputError(f"Invalid {name} format") from None


@sales_bp.post("")
@require_user
def create_sale_route():
    """
    Create a completed sale and deduct stock.

    Body:
    {
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 1500}],
        "payment_method": "cash",
        "sale_date": "2026-01-01T10:00:00Z",   (optional)
        "notes": "..."                          (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        sale = sales_service.create_sale(
            g.current_user.id,
            data.get("items"),
            data.get("payment_method"),
            sale_date=data.get("sale_date"),
            notes=data.get("notes"),
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_user
def list_sales_route():
    """
    List completed sales, newest first.

    Query params: payment_method, start_date, end_date, search, limit, offset
    """
    limit, offset = pagination_args()
    sales, total = sales_service.list_sales(
        g.current_user.id,
        payment_method=request.args.get("payment_method"),
        start_date=_date_arg("start_date"),
        end_date=_date_arg("end_date"),
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "sales": [sale.to_dict() for sale in sales],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@sales_bp.get("/<int:sale_id>")
@require_user
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(g.current_user.id, sale_id)
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.post("/<int:sale_id>/cancel")
@require_user
def cancel_sale_route(sale_id: int):
    """Cancel a sale and restore its stock. Responds 204 on success."""
    try:
        sales_service.cancel_sale(g.current_user.id, sale_id, acting_user_id=g.current_user.id)
        return "", 204

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to cancel sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500
