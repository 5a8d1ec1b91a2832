# Overview: Flask API routes for guest customer operations; parses input and returns JSON responses.

# backend/cafe/routes/customers.py
"""
Guest customer routes (ADMIN / STAFF only).

Includes the guest reward ledger and the merge of a guest into a
registered user.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import STAFF_ROLES, require_auth, require_role
from ..services import customers_service, merge_service, rewards_service
from ..services.identity_service import OwnerRef
from ..validation import ConflictError, NotFoundError, ValidationError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customers_service.create_customer(
            name=payload.get("name"),
            phone_number=payload.get("phone_number"),
            image=payload.get("image"),
        )
        return jsonify(customer.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_customers_route():
    """
    Query params:
    - page: int (default 1)
    - limit: int (default 20, max 100)
    - search: name or phone substring
    """
    result = customers_service.list_customers(
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
        search=request.args.get("search"),
    )
    return jsonify(result), 200


@customers_bp.get("/search")
@require_auth
@require_role(*STAFF_ROLES)
def search_customers_route():
    customers = customers_service.search_customers(
        name=request.args.get("name"),
        phone=request.args.get("phone"),
    )
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_customer_route(customer_id: int):
    try:
        return jsonify(customers_service.get_customer_details(customer_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customers_service.update_customer(customer_id, payload)
        return jsonify(customer.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role(*STAFF_ROLES)
def delete_customer_route(customer_id: int):
    try:
        customers_service.soft_delete_customer(customer_id)
        return jsonify({"ok": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.post("/<int:customer_id>/merge-to-user")
@require_auth
@require_role(*STAFF_ROLES)
def merge_to_user_route(customer_id: int):
    """
    Body: phone, confirm_merge (bool)

    Without confirm_merge=true this is a dry run that only reports the
    matching user.
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = merge_service.merge_customer_to_user(
            customer_id,
            payload.get("phone"),
            confirm_merge=payload.get("confirm_merge") is True,
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to merge customer into user")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/rewards")
@require_auth
@require_role(*STAFF_ROLES)
def customer_rewards_route(customer_id: int):
    owner = OwnerRef.customer(customer_id)
    try:
        return jsonify({
            "points": rewards_service.get_points(owner),
            "history": [t.to_dict() for t in rewards_service.get_history(owner)],
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.post("/<int:customer_id>/rewards/redeem")
@require_auth
@require_role(*STAFF_ROLES)
def customer_redeem_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        balance = rewards_service.redeem(
            OwnerRef.customer(customer_id),
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
        current_app.logger.exception("Failed to redeem customer points")
        return jsonify({"error": "Internal server error"}), 500
