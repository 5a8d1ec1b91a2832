# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/cafe/routes/auth.py
"""
Authentication API routes

- Self-registration (guest customer with the same phone is merged in)
- Login / refresh (rotating refresh token) / logout
- Profile read and update
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service
from ..validation import AuthError, ConflictError, NotFoundError, ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, tokens, **extra) -> dict:
    body = {"user": user.to_dict(), **tokens.to_dict()}
    body.update(extra)
    return body


@auth_bp.post("/register")
def register_route():
    """
    Create a CUSTOMER account and return it with a token pair.

    If a guest customer already owns the phone, its orders, points and
    reviews are transferred to the new account ("merged_customer").
    """
    payload = request.get_json(silent=True) or {}
    try:
        user, tokens, summary = auth_service.register(payload)
        return jsonify(_session_payload(user, tokens, merged_customer=summary)), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    payload = request.get_json(silent=True) or {}
    try:
        user, tokens = auth_service.login(payload.get("email"), payload.get("password"))
        return jsonify(_session_payload(user, tokens, message="Login successful")), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    """Rotate tokens; the presented refresh token stops working."""
    payload = request.get_json(silent=True) or {}
    try:
        user, tokens = auth_service.refresh(payload.get("refresh_token"))
        return jsonify(_session_payload(user, tokens)), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to refresh token")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        auth_service.logout(g.current_user.id)
        return jsonify({"message": "Logged out"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.patch("/me")
@require_auth
def update_me_route():
    """Update full_name / phone; password changes require current_password."""
    payload = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_profile(g.current_user.id, payload)
        return jsonify({"user": user.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500
