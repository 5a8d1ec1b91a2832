from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


REWARD_EARN = "EARN"
REWARD_REDEEM = "REDEEM"


class RewardTransaction(db.Model):
    """
    Append-only ledger of reward point events.

    TRANSACTION TYPES:
    - EARN: Points earned from a paid order
    - REDEEM: Points spent on an offer

    points is always positive; the type gives the direction. balance_after is
    the owner's balance right after this row was written, so replaying an
    owner's rows from 0 reproduces every snapshot.

    IMMUTABLE: Records are never updated or deleted. The only exception is an
    identity merge, which re-points the owner columns.
    """
    __tablename__ = "reward_transactions"
    __table_args__ = (
        db.CheckConstraint(
            "(user_id IS NULL) <> (customer_id IS NULL)",
            name="ck_reward_transactions_single_owner",
        ),
        db.CheckConstraint("points > 0", name="ck_reward_transactions_points_positive"),
        db.CheckConstraint("balance_after >= 0", name="ck_reward_transactions_balance_non_negative"),
        db.Index("ix_reward_txns_user_created", "user_id", "created_at"),
        db.Index("ix_reward_txns_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # EARN, REDEEM
    points = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    offer_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "type": self.type,
            "points": self.points,
            "balance_after": self.balance_after,
            "description": self.description,
            "order_id": self.order_id,
            "offer_id": self.offer_id,
            "created_at": to_utc_z(self.created_at),
        }
