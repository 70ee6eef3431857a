# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/orderdesk/routes/orders.py
"""Order fulfillment API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_user_id, require_user
from ..errors import FulfillmentError
from ..services import completion_service, order_service, void_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _json_body() -> dict | None:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def _invalid_body():
    return jsonify({"error": "Invalid JSON payload", "code": "VALIDATION_FAILED", "details": {}, "retryable": False}), 400


@orders_bp.post("")
def create_order_route():
    """
    Create an order from a cart.

    With "payment" the order is completed in the same transaction and the
    receipt carries completed_date.
    """
    data = _json_body()
    if data is None:
        return _invalid_body()

    try:
        order = order_service.create_order(
            data.get("order_items"),
            customer_name=data.get("customer_name"),
            notes=data.get("notes"),
            preferred_pickup_date=data.get("preferred_pickup_date"),
            payment=data.get("payment"),
            user_id=current_user_id(),
        )
        return jsonify(order.receipt()), 201

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception(
            "Failed to create order (items=%r, customer=%r)",
            data.get("order_items"), data.get("customer_name"),
        )
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
def list_orders_route():
    """
    Active orders, or ?order_number=... for an exact completed-order lookup.
    """
    order_number = request.args.get("order_number")
    try:
        if order_number:
            orders = order_service.find_completed_orders(order_number)
        else:
            orders = order_service.list_active_orders()
        return jsonify({"orders": orders}), 200

    except Exception:
        current_app.logger.exception("Failed to list orders (order_number=%r)", order_number)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": order.to_dict()}), 200
    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>")
def update_order_route(order_id: int):
    data = _json_body()
    if data is None:
        return _invalid_body()

    try:
        order = order_service.update_order(order_id, data, user_id=current_user_id())
        return jsonify({"order": order.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update order %s (payload=%r)", order_id, data)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        summary = order_service.delete_order(order_id, user_id=current_user_id())
        return jsonify(summary), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/complete")
def complete_order_route(order_id: int):
    """
    Complete a Pending / In Progress order.

    Body: {payment_method, amount, reference_number?, notes?}
    """
    data = _json_body()
    if data is None:
        return _invalid_body()

    try:
        order = completion_service.complete_order(order_id, data, user_id=current_user_id())
        return jsonify({"order": order.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception(
            "Failed to complete order %s (payment_method=%r)",
            order_id, data.get("payment_method"),
        )
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/void")
@require_user
def void_order_route(order_id: int):
    """
    Void an order in any non-voided state and restore its stock.

    Body: {void_reason}
    """
    data = _json_body()
    if data is None:
        return _invalid_body()

    try:
        order = void_service.void_order(order_id, data.get("void_reason"), user_id=current_user_id())
        return jsonify({"order": order.to_dict()}), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to void order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500
