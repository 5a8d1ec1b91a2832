# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/cafe/routes/orders.py
"""
Order routes

OWNERSHIP:
- CUSTOMER callers only ever create and see their own orders
- ADMIN / STAFF create orders for walk-ins, guests or members and see all

PAID TRANSITION: PUT /<id>/status with {"status": "PAID"} runs the
settlement workflow in orders_service. When the status change committed
but the reward credit failed, the response is still 200 with the PAID
order plus a "reward_credit" block flagging reconciliation.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import STAFF_ROLES, is_staff, require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import orders_service
from ..validation import NotFoundError, PartialFailureError, ValidationError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order.

    Body: customer_name, user_id | customer_id, payment_method,
    order_details=[{product_id, quantity, unit_price}]
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and not is_staff():
        payload = {
            **payload,
            "user_id": g.current_user.id,
            "customer_id": None,
            "customer_name": payload.get("customer_name") or g.current_user.full_name,
        }

    try:
        order = orders_service.create_order(payload)
        return jsonify({"order": order.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_my_orders_route():
    """Caller's own orders; staff see every order."""
    user_id = None if is_staff() else g.current_user.id
    orders = orders_service.list_orders(
        customer_name=request.args.get("customer_name"),
        user_id=user_id,
    )
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/all")
@require_auth
@require_role(*STAFF_ROLES)
def list_all_orders_route():
    orders = orders_service.list_orders(customer_name=request.args.get("customer_name"))
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = orders_service.get_order(order_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    # Non-staff callers cannot tell someone else's order from a missing one
    if not is_staff() and order.user_id != g.current_user.id:
        return jsonify({"error": f"Order with ID {order_id} not found"}), 404
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_role(*STAFF_ROLES)
def update_order_status_route(order_id: int):
    """Body: status, payment_method, cancellation_reason (required for CANCELLED)."""
    payload = request.get_json(silent=True)
    try:
        order = orders_service.update_order(order_id, payload)
        return jsonify({"order": order.to_dict()}), 200
    except PartialFailureError as e:
        return jsonify({
            "order": e.entity.to_dict() if e.entity is not None else None,
            "reward_credit": {
                "status": "FAILED",
                "error": str(e),
                "reconciliation_required": True,
            },
        }), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/credit-points")
@require_auth
@require_role(ROLE_ADMIN)
def credit_order_points_route(order_id: int):
    """Operator recovery: credit the points a PAID order still owes."""
    try:
        credited = orders_service.reconcile_order_points(order_id)
        order = orders_service.get_order(order_id)
        return jsonify({"order": order.to_dict(), "credited_points": credited or 0}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to credit order points")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_order_route(order_id: int):
    try:
        orders_service.delete_order(order_id)
        return jsonify({"ok": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
