# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopledger/routes/products.py
"""
Product management routes.

MULTI-TENANT: Products belong to g.current_user. Creating a product also
creates its stock record; there is no hard delete.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import products_service
from ..errors import InventoryError
from ..decorators import require_user

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
@require_user
def create_product_route():
    """
    Body:
    {
        "name": "Blue Pen", "sku": "PEN-01", "unit": "piece",
        "purchase_price_cents": 50, "selling_price_cents": 120,
        "min_stock_level": 10, "supplier_id": 1, "initial_stock": 100
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        product, record = products_service.create_product(
            g.current_user.id,
            name=data.get("name"),
            sku=data.get("sku"),
            unit=data.get("unit", "piece"),
            purchase_price_cents=data.get("purchase_price_cents", 0),
            selling_price_cents=data.get("selling_price_cents", 0),
            min_stock_level=data.get("min_stock_level", 10),
            supplier_id=data.get("supplier_id"),
            initial_stock=data.get("initial_stock", 0),
        )
        return jsonify({"product": product.to_dict(), "stock": record.to_dict()}), 201

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/deactivate")
@require_user
def deactivate_product_route(product_id: int):
    try:
        product = products_service.deactivate_product(g.current_user.id, product_id)
        return jsonify({"product": product.to_dict()}), 200

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to deactivate product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/activate")
@require_user
def activate_product_route(product_id: int):
    try:
        product = products_service.activate_product(g.current_user.id, product_id)
        return jsonify({"product": product.to_dict()}), 200

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to activate product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
