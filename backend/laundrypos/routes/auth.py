# Overview: Flask API routes for sign-up, sign-in and logout.

# backend/laundrypos/routes/auth.py
"""
Authentication API routes

- signup only while no administrator exists
- signin returns an opaque bearer token for the Authorization header
- logout revokes the presented token
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, require_auth
from ..errors import POSError
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_response(user, status: int):
    session, token = session_service.create_session(
        user,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
    }), status


@auth_bp.post("/signup")
def signup_route():
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        email = data.get("email")
        password = data.get("password")
        if not all([username, email, password]):
            return jsonify({"error": "username, email and password required"}), 400

        user = auth_service.signup(username, email, password)
        current_app.logger.info("Administrator account %s created via signup", user.username)
        return _session_response(user, 201)

    except POSError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Signup failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/signin")
def signin_route():
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")
        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.warning("Failed sign-in for %s from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        return _session_response(user, 200)

    except Exception:
        current_app.logger.exception("Signin failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.get("/status")
def status_route():
    """Lets the login screen decide between signup and signin."""
    return jsonify({"signup_open": not auth_service.has_users()}), 200
