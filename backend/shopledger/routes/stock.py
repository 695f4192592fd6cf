# Overview: Flask API routes for stock levels and movement history (read-only).

"""
Stock read routes.

There is deliberately no write endpoint here: stock only moves through
sales, sale cancellations, purchase receipts and product creation.
"""

from flask import Blueprint, request, jsonify, g

from ..services import stock_service
from ..decorators import require_user, pagination_args


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _stock_payload(record) -> dict:
    data = record.to_dict()
    product = record.product
    data.update({
        "product_name": product.name,
        "sku": product.sku,
        "unit": product.unit,
        "min_stock_level": product.min_stock_level,
        "is_low_stock": record.current_stock <= product.min_stock_level,
    })
    return data


@stock_bp.get("")
@require_user
def list_stock_route():
    """
    Query params:
    - stock_status: low_stock | out_of_stock | in_stock (optional)
    - search: matches product name or SKU (optional)
    - limit, offset
    """
    limit, offset = pagination_args()
    records, total = stock_service.list_stock(
        g.current_user.id,
        stock_status=request.args.get("stock_status"),
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "stock": [_stock_payload(r) for r in records],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@stock_bp.get("/summary")
@require_user
def stock_summary_route():
    return jsonify({"summary": stock_service.get_stock_summary(g.current_user.id)}), 200


@stock_bp.get("/product/<int:product_id>")
@require_user
def get_product_stock_route(product_id: int):
    record = stock_service.get_stock(g.current_user.id, product_id)
    return jsonify({"stock": _stock_payload(record)}), 200


@stock_bp.get("/product/<int:product_id>/history")
@require_user
def get_product_history_route(product_id: int):
    """Movement history for one product, newest first."""
    limit, offset = pagination_args(default_limit=50)
    entries, total = stock_service.get_movement_history(
        g.current_user.id, product_id, limit=limit, offset=offset
    )
    return jsonify({
        "product_id": product_id,
        "movements": [m.to_dict() for m in entries],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200
