# Overview: Flask API routes for reviews; public listing and ADMIN management.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import reviews_service
from ..validation import NotFoundError, ValidationError


reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")
admin_reviews_bp = Blueprint("admin_reviews", __name__, url_prefix="/api/admin/reviews")


@reviews_bp.get("")
def public_reviews_route():
    """
    Query params: page, limit (default 10, max 100), min_rating, max_rating,
    sort ("created_at:desc", "rating:asc", ...)
    """
    try:
        result = reviews_service.list_public_reviews(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            min_rating=request.args.get("min_rating"),
            max_rating=request.args.get("max_rating"),
            sort=request.args.get("sort"),
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@admin_reviews_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_review_route():
    payload = request.get_json(silent=True)
    try:
        review = reviews_service.create_review(payload, actor_id=g.current_user.id)
        return jsonify(review.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create review")
        return jsonify({"error": "Internal server error"}), 500


@admin_reviews_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_reviews_route():
    """
    Query params: page, limit (default 20, max 100), search, rating,
    min_rating, max_rating, user_id, customer_id, sort, include_deleted
    """
    try:
        result = reviews_service.list_reviews(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            search=request.args.get("search"),
            rating=request.args.get("rating"),
            min_rating=request.args.get("min_rating"),
            max_rating=request.args.get("max_rating"),
            user_id=request.args.get("user_id", type=int),
            customer_id=request.args.get("customer_id", type=int),
            sort=request.args.get("sort"),
            include_deleted=request.args.get("include_deleted", "").lower() in ("1", "true", "yes"),
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@admin_reviews_bp.get("/<int:review_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_review_route(review_id: int):
    try:
        return jsonify(reviews_service.get_review(review_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@admin_reviews_bp.patch("/<int:review_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_review_route(review_id: int):
    payload = request.get_json(silent=True)
    try:
        review = reviews_service.update_review(review_id, payload, actor_id=g.current_user.id)
        return jsonify(review.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update review")
        return jsonify({"error": "Internal server error"}), 500


@admin_reviews_bp.delete("/<int:review_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_review_route(review_id: int):
    try:
        reviews_service.soft_delete_review(review_id, actor_id=g.current_user.id)
        return jsonify({"ok": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
