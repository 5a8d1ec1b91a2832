# Overview: Flask API routes for the caller's reward ledger.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import rewards_service
from ..services.identity_service import OwnerRef
from ..validation import NotFoundError, ValidationError


rewards_bp = Blueprint("rewards", __name__, url_prefix="/api/rewards")


@rewards_bp.get("/offers")
def offers_route():
    return jsonify({"offers": rewards_service.list_offers()}), 200


@rewards_bp.get("/points")
@require_auth
def points_route():
    return jsonify({"points": rewards_service.get_points(OwnerRef.user(g.current_user.id))}), 200


@rewards_bp.get("/history")
@require_auth
def history_route():
    history = rewards_service.get_history(OwnerRef.user(g.current_user.id))
    return jsonify({"history": [t.to_dict() for t in history]}), 200


@rewards_bp.post("/redeem")
@require_auth
def redeem_route():
    """Body: points, offer_id (optional), description (optional)."""
    payload = request.get_json(silent=True) or {}
    try:
        balance = rewards_service.redeem(
            OwnerRef.user(g.current_user.id),
            payload.get("points"),
            offer_id=payload.get("offer_id"),
            description=payload.get("description"),
        )
        return jsonify({"points": balance}), 200
    except ValidationError as e:
        return jsonify({"error": str(e), **e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to redeem points")
        return jsonify({"error": "Internal server error"}), 500
