# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import FulfillmentError
from ..services import catalog_service, ledger_service
from orderdesk.time_utils import parse_iso_date

"""
Date semantics:
- start_date / end_date are ISO-8601 dates (YYYY-MM-DD), both inclusive.
- type is IN or OUT (case-insensitive).
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
def list_ledger_route():
    entry_type = request.args.get("type")
    if entry_type and entry_type.upper() not in ledger_service.LEDGER_TYPES:
        return jsonify({"error": "type must be IN or OUT"}), 400

    product_id = request.args.get("product_id", type=int)

    page = request.args.get("page", default=1, type=int)
    page = max(1, page)
    per_page = request.args.get("per_page", default=50, type=int)
    per_page = max(1, min(per_page, 500))

    try:
        start_date = parse_iso_date(request.args.get("start_date"))
        end_date = parse_iso_date(request.args.get("end_date"))
    except ValueError:
        return jsonify({"error": "start_date and end_date must be ISO-8601 dates"}), 400

    try:
        rows, total = ledger_service.list_entries(
            type=entry_type,
            product_id=product_id,
            start_date=start_date,
            end_date=end_date,
            page=page,
            per_page=per_page,
        )
        return jsonify({
            "items": [row.to_dict() for row in rows],
            "page": page,
            "per_page": per_page,
            "total": total,
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list ledger entries")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/products/<int:product_id>")
def product_ledger_route(product_id: int):
    """Ledger history and IN/OUT totals for one product."""
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))

    try:
        product = catalog_service.get_product(product_id)
        rows, total = ledger_service.list_entries(product_id=product_id, page=1, per_page=limit)
        return jsonify({
            "product": {"id": product.id, "name": product.name},
            "statistics": ledger_service.product_statistics(product_id),
            "items": [row.to_dict() for row in rows],
            "total": total,
        }), 200

    except FulfillmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load ledger for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
