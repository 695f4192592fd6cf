# Overview: Flask API routes for supplier management.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import supplier_service
from ..errors import InventoryError
from ..decorators import require_user

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.post("")
@require_user
def create_supplier_route():
    try:
        data = request.get_json(silent=True) or {}
        supplier = supplier_service.create_supplier(
            g.current_user.id,
            name=data.get("name"),
            email=data.get("email"),
            phone=data.get("phone"),
            notes=data.get("notes"),
        )
        return jsonify({"supplier": supplier.to_dict()}), 201

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.post("/<int:supplier_id>/deactivate")
@require_user
def deactivate_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.deactivate_supplier(g.current_user.id, supplier_id)
        return jsonify({"supplier": supplier.to_dict()}), 200

    except InventoryError:
        raise
    except Exception:
        current_app.logger.exception("Failed to deactivate supplier %s", supplier_id)
        return jsonify({"error": "Internal server error"}), 500
