# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/laundrypos/routes/orders.py
"""
Order API Routes

- POST /api/orders            checkout
- POST /api/orders/preview    quote a cart without saving
- GET  /api/orders            list (status, payment_method, from_date, to_date, limit)
- GET  /api/orders/<id>       one order with items and returns
- GET  /api/orders/<id>/billing   bill redisplay (billing tax convention)
- PUT  /api/orders/<id>/status | /delivery | /payment
- DELETE /api/orders/<id>
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import POSError
from ..mapping import normalize_payload
from ..services import order_service
from ..time_utils import parse_day

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Request body:
    {
        "customer_id": "C00001",            (optional, walk-in when absent)
        "items": [{"product_id": "...", "service": "washAndIron", "quantity": 2, "discount": 0}],
        "cart_discount": {"type": "percentage", "value": 10},   (optional)
        "payment_method": "cash" | "card" | "both" | "cod" | "credit",
        "cash_amount": 10.0, "card_amount": 5.75              (both only)
    }
    """
    try:
        data = normalize_payload("order", request.get_json(silent=True))
        order = order_service.create_order(
            items=data.get("items"),
            payment_method=data.get("payment_method") or "cash",
            customer_id=data.get("customer_id"),
            cart_discount=data.get("cart_discount"),
            cash_amount=data.get("cash_amount"),
            card_amount=data.get("card_amount"),
        )
        return jsonify({"order": order.to_dict()}), 201

    except POSError as e:
        if e.http_status >= 500:
            current_app.logger.error("Checkout failed: %s", e.message)
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/preview")
@require_auth
def preview_order_route():
    try:
        data = normalize_payload("order", request.get_json(silent=True))
        totals = order_service.preview_totals(
            data.get("items"),
            cart_discount=data.get("cart_discount"),
            tax_rate=data.get("tax_rate"),
            convention=data.get("convention"),
        )
        return jsonify({"totals": totals.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        from_day = parse_day(request.args.get("from_date"))
        to_day = parse_day(request.args.get("to_date"))
        limit = request.args.get("limit", type=int)
    except ValueError:
        return jsonify({"error": "from_date/to_date must be YYYY-MM-DD"}), 400

    orders = order_service.list_orders(
        status=request.args.get("status"),
        payment_method=request.args.get("payment_method"),
        from_day=from_day,
        to_day=to_day,
        limit=limit,
    )
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<order_id>")
@require_auth
def get_order_route(order_id: str):
    try:
        order = order_service.get_order(order_id)
        data = order.to_dict()
        data["returns"] = [r.to_dict(include_items=False) for r in order.returns]
        return jsonify({"order": data}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status


@orders_bp.get("/<order_id>/billing")
@require_auth
def billing_route(order_id: str):
    try:
        totals = order_service.billing_breakdown(order_id)
        return jsonify({"order_id": order_id, "billing": totals.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status


@orders_bp.put("/<order_id>/status")
@require_auth
def update_status_route(order_id: str):
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.update_order_status(order_id, data.get("status"))
        return jsonify({"order": order.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update status of order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<order_id>/delivery")
@require_auth
def update_delivery_route(order_id: str):
    try:
        data = normalize_payload("order", request.get_json(silent=True))
        order = order_service.update_delivery_status(order_id, data.get("delivery_status"))
        return jsonify({"order": order.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update delivery of order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<order_id>/payment")
@require_auth
def update_payment_route(order_id: str):
    """Body: {"payment_status": "paid", "payment_method": "cash" | "card"}"""
    try:
        data = normalize_payload("order", request.get_json(silent=True))
        order = order_service.update_payment_status(
            order_id,
            data.get("payment_status"),
            settled_with=data.get("payment_method"),
        )
        return jsonify({"order": order.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update payment of order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<order_id>")
@require_auth
def delete_order_route(order_id: str):
    try:
        order_service.delete_order(order_id)
        return jsonify({"message": "Order deleted"}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500
