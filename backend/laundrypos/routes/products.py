# Overview: Flask API routes for the product catalog.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import POSError
from ..services import products_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    products = products_service.list_products(request.args.get("q"))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/<product_id>")
@require_auth
def get_product_route(product_id: str):
    try:
        return jsonify({"product": products_service.get_product(product_id).to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.get("/barcode/<code>")
@require_auth
def get_product_by_barcode_route(code: str):
    """Scanner lookup."""
    try:
        return jsonify({"product": products_service.get_by_barcode(code).to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.post("")
@require_auth
def create_product_route():
    try:
        product = products_service.create_product(request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 201
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<product_id>")
@require_auth
def update_product_route(product_id: str):
    try:
        product = products_service.update_product(product_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<product_id>")
@require_auth
def delete_product_route(product_id: str):
    try:
        products_service.delete_product(product_id)
        return jsonify({"message": "Product deleted"}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
