# Overview: Flask API routes for the customer directory.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import POSError
from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    customers = customer_service.list_customers(request.args.get("q"))
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/<customer_id>")
@require_auth
def get_customer_route(customer_id: str):
    try:
        return jsonify({"customer": customer_service.get_customer(customer_id).to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status


@customers_bp.post("")
@require_auth
def create_customer_route():
    try:
        customer = customer_service.create_customer(request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 201
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<customer_id>")
@require_auth
def update_customer_route(customer_id: str):
    try:
        customer = customer_service.update_customer(customer_id, request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500
