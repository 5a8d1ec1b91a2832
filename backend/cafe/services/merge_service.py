# Overview: Folds a guest Customer into a registered User.

"""
Identity Merge Service

Two entry points share ONE transfer algorithm (transfer_customer_to_user):
- merge_customer_to_user(): staff-initiated, requires confirm_merge=True
- auth_service.register(): automatic when the new user's phone matches a guest

TRANSFER (single transaction, customer + user rows locked):
1. orders:              customer_id -> user_id
2. balance:             user.reward_points += customer.reward_points
3. reward transactions: customer_id -> user_id
4. reviews:             customer_id -> user_id
5. customer soft-deleted

No ledger row is written for step 2: the customer's EARN/REDEEM rows move
with the balance, so the user's ledger still replays to its balance.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Customer, Order, Review, RewardTransaction, User
from ..validation import ValidationError
from ..time_utils import utcnow
from .concurrency import begin_write, run_with_retry
from .identity_service import (
    ensure_phone_available,
    find_user_by_phone,
    get_active_customer,
    get_active_user,
    normalize_phone,
)


def _repoint(model, customer_id: int, user_id: int) -> int:
    result = db.session.execute(
        update(model)
        .where(model.customer_id == customer_id)
        .values(user_id=user_id, customer_id=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def transfer_customer_to_user(customer_id: int, user_id: int) -> dict:
    """
    Move everything a guest owns onto a user, inside the CALLER's transaction.

    Both rows are (re)loaded with FOR UPDATE and the customer is re-checked as
    not deleted, so a concurrent merge of the same customer fails instead of
    double-crediting. The caller commits.
    """
    customer: Customer = get_active_customer(customer_id, for_update=True)
    user: User = get_active_user(user_id, for_update=True)

    moved_orders = _repoint(Order, customer.id, user.id)
    transferred_points = customer.reward_points or 0
    if transferred_points > 0:
        user.reward_points = user.reward_points + transferred_points
    moved_transactions = _repoint(RewardTransaction, customer.id, user.id)
    moved_reviews = _repoint(Review, customer.id, user.id)

    customer.deleted_at = utcnow()

    summary = {
        "customer_id": customer.id,
        "user_id": user.id,
        "orders": moved_orders,
        "reward_transactions": moved_transactions,
        "reviews": moved_reviews,
        "points": transferred_points,
    }
    current_app.logger.info("Customer %s merged into user %s: %s", customer.id, user.id, summary)
    return summary


def merge_customer_to_user(customer_id: int, phone: str | None, confirm_merge: bool = False) -> dict:
    """
    Staff-initiated reconciliation of a guest with a registered account.

    - no user owns `phone`: the guest simply claims the phone (merged=False)
    - a user owns it, not confirmed: dry run, nothing changes (merged=False, user_id)
    - a user owns it, confirmed: transfer and soft-delete (merged=True, user_id)
    """
    customer = get_active_customer(customer_id)

    phone = normalize_phone(phone)
    if not phone:
        raise ValidationError("Phone is required")

    user = find_user_by_phone(phone)
    if user is None:
        ensure_phone_available(phone, exclude_customer_id=customer.id)
        customer.phone_number = phone
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return {
            "merged": False,
            "message": "Phone updated for customer (no existing user found)",
        }

    if confirm_merge is not True:
        return {
            "merged": False,
            "message": "A user with this phone exists. Set confirm_merge=true to merge.",
            "user_id": user.id,
        }

    user_id = user.id

    def _op():
        begin_write()
        summary = transfer_customer_to_user(customer_id, user_id)
        db.session.commit()
        return summary

    summary = run_with_retry(_op)
    return {
        "merged": True,
        "message": "Customer merged into existing user and soft-deleted",
        "user_id": user_id,
        "transferred": summary,
    }
