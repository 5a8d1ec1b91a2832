# Overview: Reward ledger; balance mutations and ledger rows written as one unit.

"""
Reward Ledger

Every owner (User or Customer) carries a denormalized reward_points balance
and an append-only list of RewardTransaction rows.

INVARIANTS:
- balance never goes negative
- each row's balance_after equals the owner's balance right after it
- sum(EARN) - sum(REDEEM) over an owner's rows == owner.reward_points

To keep them, every mutation runs as ONE transaction:
  begin_write -> lock owner row -> read/modify balance -> insert ledger row -> commit
Owner rows also carry a version_id column, so a lost race surfaces as
StaleDataError and run_with_retry replays the whole unit.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Order, RewardTransaction
from ..models.orders import ORDER_STATUS_PAID
from ..models.rewards import REWARD_EARN, REWARD_REDEEM
from ..validation import NotFoundError, ValidationError, coerce_int
from ..time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .identity_service import OwnerRef, load_owner


REWARD_OFFERS = (
    {
        "id": "free-small-drink",
        "name": "Free Small Drink",
        "cost": 80,
        "description": "Redeem for any small-sized drink (iced or hot)",
    },
    {
        "id": "free-topping",
        "name": "Free Extra Topping",
        "cost": 40,
        "description": "Add an extra topping to your drink at no cost",
    },
    {
        "id": "discount-10",
        "name": "10% Discount Voucher",
        "cost": 120,
        "description": "Apply 10% discount on your next order",
    },
)


def list_offers() -> list[dict]:
    return [dict(offer) for offer in REWARD_OFFERS]


def points_for_total(total) -> int:
    """Loyalty conversion: one point per REWARD_POINT_VALUE currency units, rounded down."""
    point_value = current_app.config["REWARD_POINT_VALUE"]
    if total is None or total <= 0:
        return 0
    return int(total // point_value)


def _append_transaction(
    owner: OwnerRef,
    *,
    type_: str,
    points: int,
    balance_after: int,
    description: str | None,
    order_id: int | None = None,
    offer_id: str | None = None,
) -> RewardTransaction:
    txn = RewardTransaction(
        **owner.columns(),
        type=type_,
        points=points,
        balance_after=balance_after,
        description=description,
        order_id=order_id,
        offer_id=offer_id,
    )
    db.session.add(txn)
    return txn


def _earn_locked(owner: OwnerRef, points: int, description: str, order_id: int | None = None) -> int:
    row = load_owner(owner, for_update=True)
    new_balance = row.reward_points + points
    row.reward_points = new_balance
    _append_transaction(
        owner,
        type_=REWARD_EARN,
        points=points,
        balance_after=new_balance,
        description=description,
        order_id=order_id,
    )
    return new_balance


def get_points(owner: OwnerRef) -> int:
    return load_owner(owner).reward_points


def get_history(owner: OwnerRef) -> list[RewardTransaction]:
    """Ledger rows for the owner, newest first."""
    load_owner(owner)
    return (
        db.session.query(RewardTransaction)
        .filter(owner.filter(RewardTransaction))
        .order_by(RewardTransaction.created_at.desc(), RewardTransaction.id.desc())
        .all()
    )


def earn_points(owner: OwnerRef, points: int, metadata: dict | None = None) -> int:
    """
    Credit `points` to the owner and append an EARN row.

    points <= 0 is a no-op that returns the current balance. The description
    defaults to one derived from metadata["order_id"].
    Returns the new balance.
    """
    metadata = metadata or {}
    if points <= 0:
        return get_points(owner)

    order_id = metadata.get("order_id")
    description = metadata.get("description")
    if not description:
        if order_id:
            description = f"Earned {points} points from order #{order_id}"
        else:
            description = f"Earned {points} reward points"

    def _op():
        begin_write()
        new_balance = _earn_locked(owner, points, description, order_id=order_id)
        db.session.commit()
        return new_balance

    return run_with_retry(_op)


def redeem(
    owner: OwnerRef,
    points,
    offer_id: str | None = None,
    description: str | None = None,
) -> int:
    """
    Spend points. Rejects (balance unchanged) when points exceed the balance.
    Returns the new balance.
    """
    points = coerce_int(points, "points")
    if points < 1:
        raise ValidationError("points must be at least 1")

    if not description:
        description = f"Redeemed {points} points" + (f" for {offer_id}" if offer_id else "")

    def _op():
        begin_write()
        row = load_owner(owner, for_update=True)
        if row.reward_points < points:
            raise ValidationError(
                "Not enough reward points",
                details={"balance": row.reward_points, "requested": points},
            )
        new_balance = max(0, row.reward_points - points)
        row.reward_points = new_balance
        _append_transaction(
            owner,
            type_=REWARD_REDEEM,
            points=points,
            balance_after=new_balance,
            description=description,
            offer_id=offer_id,
        )
        db.session.commit()
        return new_balance

    return run_with_retry(_op)


def credit_order_points(order_id: int) -> int | None:
    """
    Settle the points a PAID order owes its owner.

    The ledger row, the balance bump and the order's reward_points_credited_at
    stamp commit together, so an order is credited at most once no matter how
    often this runs. Returns the points credited, or None when nothing is owed
    (not PAID, nothing due, already credited, or anonymous order).
    """
    def _op():
        begin_write()
        order = lock_for_update(db.session.query(Order).filter(Order.id == order_id)).first()
        if not order:
            raise NotFoundError(f"Order with ID {order_id} not found")

        owner = OwnerRef.from_columns(order.user_id, order.customer_id)
        due = order.reward_points_due or 0
        if (
            order.status != ORDER_STATUS_PAID
            or due <= 0
            or order.reward_points_credited_at is not None
            or owner is None
        ):
            db.session.rollback()
            return None

        _earn_locked(owner, due, f"Earned {due} points from order #{order.id}", order_id=order.id)
        order.reward_points_credited_at = utcnow()
        db.session.commit()
        return due

    return run_with_retry(_op)


def audit_owner(owner: OwnerRef) -> dict:
    """Compare an owner's stored balance with the replayed ledger."""
    row = load_owner(owner)
    signed = case(
        (RewardTransaction.type == REWARD_EARN, RewardTransaction.points),
        else_=-RewardTransaction.points,
    )
    ledger_sum = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(owner.filter(RewardTransaction))
        .scalar()
    )
    return {
        "owner_kind": owner.kind,
        "owner_id": owner.id,
        "balance": row.reward_points,
        "ledger_sum": int(ledger_sum),
        "consistent": int(ledger_sum) == row.reward_points,
    }
