# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/laundrypos/routes/returns.py
"""
Return Processing API Routes

A return is one request: validation, pricing, the Return document, stock and
the order status change all happen in return_service.process_return.
Clients should send an Idempotency-Key header (or "idempotency_key" in the
body) so a retry after a timeout cannot refund twice.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import POSError
from ..mapping import normalize_payload
from ..services import return_service
from ..time_utils import parse_day

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
def create_return_route():
    """
    Request body:
    {
        "order_id": "TRX000123",
        "items": [{"product_id": "...", "quantity": 1}, {"barcode": "...", "quantity": 2}],
        "reason": "Stain not removed"
    }

    Returns:
        201: Return recorded, order now returned
        400: validation failed (``kind`` and ``details.index`` identify the item)
        404: order not found
        409: order already returned or cancelled
        500: storage failure (``retryable`` / ``needs_reconciliation``)
    """
    try:
        data = normalize_payload("return", request.get_json(silent=True))
        return_doc = return_service.process_return(
            data.get("order_id"),
            data.get("items"),
            reason=data.get("reason"),
            idempotency_key=request.headers.get("Idempotency-Key") or data.get("idempotency_key"),
        )
        return jsonify({"return": return_doc.to_dict()}), 201

    except POSError as e:
        if e.http_status >= 500:
            current_app.logger.error("Return for order failed: %s (%s)", e.message, e.details)
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/preview")
@require_auth
def preview_return_route():
    try:
        data = normalize_payload("return", request.get_json(silent=True))
        plan = return_service.preview_return(data.get("order_id"), data.get("items"))
        return jsonify({"preview": plan.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status


@returns_bp.get("")
@require_auth
def list_returns_route():
    try:
        from_day = parse_day(request.args.get("from_date"))
        to_day = parse_day(request.args.get("to_date"))
    except ValueError:
        return jsonify({"error": "from_date/to_date must be YYYY-MM-DD"}), 400

    returns = return_service.list_returns(from_day, to_day)
    return jsonify({"returns": [r.to_dict() for r in returns]}), 200


@returns_bp.get("/<return_id>")
@require_auth
def get_return_route(return_id: str):
    try:
        return jsonify({"return": return_service.get_return(return_id).to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
