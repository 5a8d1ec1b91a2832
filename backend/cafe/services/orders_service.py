"""
Order Engine - order capture and the PAID settlement workflow

WHY: Orders are captured against a mutable catalog (prices are snapshotted
per line), and the transition into PAID is the only place where sales
counters and loyalty points move.

PAID TRANSITION (at most once per order):
1. One transaction: compare-and-set the status (WHERE status != 'PAID'),
   bump every line's product sales_count, record reward_points_due.
   Losing the compare-and-set means another request already did all of it.
2. After commit: the reward ledger credits the owner (separate aggregate,
   separate transaction). A failure here leaves a PAID, uncredited order and
   is raised as PartialFailureError; reconcile_order_points() settles it.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Customer, Order, OrderDetail
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_PAID,
    ORDER_STATUSES,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHODS,
)
from ..validation import (
    NotFoundError,
    PartialFailureError,
    ValidationError,
    coerce_choice,
    coerce_int,
    coerce_money,
    optional_int,
)
from ..time_utils import utcnow
from . import catalog_service, rewards_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .identity_service import (
    find_customer_by_name_and_null_phone,
    get_active_customer,
    get_active_user,
)


class OrderError(ValidationError):
    """Raised for invalid order input or transitions."""


def _parse_lines(raw_lines) -> list[dict]:
    if not isinstance(raw_lines, list) or not raw_lines:
        raise OrderError("Order must have at least one item")

    lines = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise OrderError(f"order_details[{index}] must be an object")
        missing = [k for k in ("product_id", "quantity", "unit_price") if raw.get(k) is None]
        if missing:
            raise OrderError(f"order_details[{index}] missing: {', '.join(missing)}")

        quantity = coerce_int(raw["quantity"], f"order_details[{index}].quantity")
        if quantity < 1:
            raise OrderError(f"order_details[{index}].quantity must be at least 1")

        lines.append({
            "product_id": coerce_int(raw["product_id"], f"order_details[{index}].product_id"),
            "quantity": quantity,
            "unit_price": coerce_money(raw["unit_price"], f"order_details[{index}].unit_price"),
        })
    return lines


def _resolve_guest_customer(customer_name: str | None) -> int | None:
    """
    Walk-in identity policy: blank name or the walk-in label -> anonymous;
    otherwise reuse the phone-less guest with the same (case-insensitive)
    name, or create one.
    """
    name = (customer_name or "").strip()
    if not name or name.casefold() == current_app.config["WALK_IN_CUSTOMER_NAME"].casefold():
        return None

    existing = find_customer_by_name_and_null_phone(name)
    if existing:
        return existing.id

    customer = Customer(name=name, phone_number=None, reward_points=0)
    db.session.add(customer)
    db.session.flush()
    return customer.id


def create_order(payload: dict) -> Order:
    """
    Create an order with its lines.

    payload keys: customer_name, user_id, customer_id, payment_method,
    order_details=[{product_id, quantity, unit_price}].
    """
    if not isinstance(payload, dict):
        raise OrderError("Invalid JSON payload")

    lines = _parse_lines(payload.get("order_details"))

    user_id = optional_int(payload.get("user_id"), "user_id")
    customer_id = optional_int(payload.get("customer_id"), "customer_id")
    if user_id is not None and customer_id is not None:
        raise OrderError("Order cannot be linked to both user and customer")

    payment_method = payload.get("payment_method")
    payment_method = (
        coerce_choice(payment_method, "payment_method", PAYMENT_METHODS)
        if payment_method is not None
        else PAYMENT_METHOD_CASH
    )

    for line in lines:
        catalog_service.get_product(line["product_id"])

    raw_name = payload.get("customer_name")
    if raw_name is not None and not isinstance(raw_name, str):
        raise OrderError("customer_name must be a string")

    try:
        if customer_id is not None:
            try:
                get_active_customer(customer_id)
            except NotFoundError:
                raise OrderError("Customer not found or deleted")
            resolved_customer_id = customer_id
        elif user_id is not None:
            get_active_user(user_id)
            resolved_customer_id = None
        else:
            resolved_customer_id = _resolve_guest_customer(raw_name)

        order = Order(
            customer_name=(raw_name or "").strip() or current_app.config["WALK_IN_CUSTOMER_NAME"],
            user_id=user_id,
            customer_id=resolved_customer_id,
            payment_method=payment_method,
        )
        for line in lines:
            order.details.append(OrderDetail(
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                subtotal=line["unit_price"] * line["quantity"],
            ))

        db.session.add(order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Order %s created (%d lines, total %s)", order.id, len(lines), order.total
    )
    return get_order(order.id)


def list_orders(customer_name: str | None = None, user_id: int | None = None) -> list[Order]:
    """Orders newest first, optionally filtered by name substring and/or owning user."""
    query = db.session.query(Order)
    if customer_name:
        query = query.filter(Order.customer_name.ilike(f"%{customer_name}%"))
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(order_id: int) -> Order:
    order = db.session.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f"Order with ID {order_id} not found")
    return order


def _parse_patch(patch: dict) -> dict:
    if not isinstance(patch, dict):
        raise OrderError("Invalid JSON payload")

    allowed = {"status", "payment_method", "cancellation_reason"}
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise OrderError(f"Field not allowed: {', '.join(unknown)}")

    clean: dict = {}
    if patch.get("status") is not None:
        clean["status"] = coerce_choice(patch["status"], "status", ORDER_STATUSES)
    if patch.get("payment_method") is not None:
        clean["payment_method"] = coerce_choice(patch["payment_method"], "payment_method", PAYMENT_METHODS)
    if "cancellation_reason" in patch:
        reason = patch["cancellation_reason"]
        clean["cancellation_reason"] = str(reason).strip() if reason is not None else None

    if clean.get("status") == ORDER_STATUS_CANCELLED and not clean.get("cancellation_reason"):
        raise OrderError("Cancellation reason is required when cancelling an order")
    return clean


def _transition_to_paid(order_id: int, extra: dict) -> bool:
    """
    Compare-and-set into PAID plus sales counters, as one unit.

    Returns True when this call performed the transition, False when the
    order was already PAID (by an earlier or concurrent request).
    """
    def _op():
        begin_write()
        order = lock_for_update(db.session.query(Order).filter(Order.id == order_id)).first()
        if not order:
            raise NotFoundError(f"Order with ID {order_id} not found")

        already_settled = order.paid_at is not None

        result = db.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status != ORDER_STATUS_PAID)
            .values(status=ORDER_STATUS_PAID, **extra)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            return False

        # PAID -> CANCELLED -> PAID: counters and points were applied the first time
        if not already_settled:
            details = db.session.query(OrderDetail).filter(OrderDetail.order_id == order_id).all()
            total = sum((d.subtotal for d in details), Decimal("0"))
            db.session.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(paid_at=utcnow(), reward_points_due=rewards_service.points_for_total(total))
                .execution_options(synchronize_session=False)
            )
            for detail in details:
                catalog_service.increment_sales_count(detail.product_id, detail.quantity)

        db.session.commit()
        return True

    return run_with_retry(_op)


def update_order(order_id: int, patch: dict) -> Order:
    """
    Apply a status / payment_method / cancellation_reason patch.

    Entering PAID triggers the settlement workflow described in the module
    docstring. Raises PartialFailureError (carrying the PAID order) when the
    status committed but crediting points failed.
    """
    clean = _parse_patch(patch)
    order = get_order(order_id)
    previous_status = order.status

    if clean.get("status") == ORDER_STATUS_PAID and previous_status != ORDER_STATUS_PAID:
        extra = {k: v for k, v in clean.items() if k != "status"}
        transitioned = _transition_to_paid(order_id, extra)
        if not transitioned:
            current_app.logger.warning(
                "Order %s was already PAID; skipping settlement side effects", order_id
            )
            return get_order(order_id)

        current_app.logger.info("Order %s transitioned %s -> PAID", order_id, previous_status)
        try:
            rewards_service.credit_order_points(order_id)
        except Exception as exc:
            current_app.logger.error(
                "RECONCILIATION REQUIRED: order %s is PAID but reward points were not credited: %s",
                order_id,
                exc,
            )
            raise PartialFailureError(
                "Order marked as paid but reward points could not be credited",
                entity=get_order(order_id),
                details={"order_id": order_id, "reason": str(exc)},
            ) from exc
        return get_order(order_id)

    try:
        for key, value in clean.items():
            setattr(order, key, value)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if "status" in clean and clean["status"] != previous_status:
        current_app.logger.info("Order %s transitioned %s -> %s", order_id, previous_status, clean["status"])
    return get_order(order_id)


def reconcile_order_points(order_id: int) -> int | None:
    """Operator recovery for a PAID order whose points were never credited."""
    get_order(order_id)
    credited = rewards_service.credit_order_points(order_id)
    if credited:
        current_app.logger.info("Order %s reconciled: %s points credited", order_id, credited)
    return credited


def list_uncredited_orders() -> list[Order]:
    """PAID orders with an owner that still owe reward points."""
    return (
        db.session.query(Order)
        .filter(
            Order.status == ORDER_STATUS_PAID,
            Order.reward_points_due > 0,
            Order.reward_points_credited_at.is_(None),
            (Order.user_id.isnot(None)) | (Order.customer_id.isnot(None)),
        )
        .order_by(Order.id.asc())
        .all()
    )


def delete_order(order_id: int) -> None:
    """Hard delete (lines cascade). Sales counters and granted points are NOT reversed."""
    order = get_order(order_id)
    db.session.delete(order)
    db.session.commit()
    current_app.logger.info("Order %s deleted", order_id)
