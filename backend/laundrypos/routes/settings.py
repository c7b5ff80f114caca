# Overview: Flask API routes for shop settings.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import POSError
from ..services import settings_service

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    return jsonify({"settings": settings_service.get_settings().to_dict()}), 200


@settings_bp.put("")
@require_auth
def update_settings_route():
    try:
        settings = settings_service.update_settings(request.get_json(silent=True))
        return jsonify({"settings": settings.to_dict()}), 200
    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
