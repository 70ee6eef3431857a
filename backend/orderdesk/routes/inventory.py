# Overview: Flask API routes for inventory reads and restocking.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_user_id
from ..errors import FulfillmentError
from ..services import inventory_service
from ..validation import clean_positive_quantity


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def list_inventory_route():
    try:
        return jsonify({"items": inventory_service.list_inventories()}), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:product_id>")
def get_inventory_route(product_id: int):
    try:
        inventory = inventory_service.get_inventory(product_id)
        return jsonify({"inventory": inventory.to_dict()}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load inventory for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:product_id>/restock")
def restock_route(product_id: int):
    """
    Add received stock.

    Body: {quantity}
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        quantity = clean_positive_quantity(data.get("quantity"))
        inventory = inventory_service.restock(product_id, quantity, user_id=current_user_id())
        return jsonify({"inventory": inventory.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception(
            "Failed to restock product %s (quantity=%r)", product_id, data.get("quantity")
        )
        return jsonify({"error": "Internal server error"}), 500
