from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z
from .catalog import money_to_json


ORDER_STATUS_PENDING_PAYMENT = "PENDING_PAYMENT"
ORDER_STATUS_PAID = "PAID"
ORDER_STATUS_CANCELLED = "CANCELLED"
ORDER_STATUSES = (ORDER_STATUS_PENDING_PAYMENT, ORDER_STATUS_PAID, ORDER_STATUS_CANCELLED)

PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_BANK_TRANSFER = "BANK_TRANSFER"
PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_BANK_TRANSFER)


class Order(db.Model):
    """
    Customer order.

    OWNER: at most one of user_id / customer_id (both NULL = anonymous walk-in).

    PAID SIDE EFFECTS: the transition into PAID increments product sales
    counters and records reward_points_due in the same transaction as the
    status change. The points themselves are credited afterwards by the reward
    ledger, which stamps reward_points_credited_at together with the ledger
    row. due > 0 with credited_at NULL on a PAID order means "owed".
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint(
            "user_id IS NULL OR customer_id IS NULL",
            name="ck_orders_single_owner",
        ),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_name = db.Column(db.String(255), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    payment_method = db.Column(db.String(16), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING_PAYMENT, index=True)
    cancellation_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Loyalty settlement bookkeeping
    reward_points_due = db.Column(db.Integer, nullable=True)
    reward_points_credited_at = db.Column(db.DateTime(timezone=True), nullable=True)

    details = db.relationship(
        "OrderDetail",
        backref="order",
        cascade="all, delete-orphan",
        order_by="OrderDetail.id",
        lazy="selectin",
    )

    @property
    def total(self) -> Decimal:
        return sum((d.subtotal for d in self.details), Decimal("0"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "status": self.status,
            "cancellation_reason": self.cancellation_reason,
            "total": money_to_json(self.total),
            "reward_points_due": self.reward_points_due,
            "reward_points_credited_at": to_utc_z(self.reward_points_credited_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "paid_at": to_utc_z(self.paid_at),
            "details": [d.to_dict() for d in self.details],
        }


class OrderDetail(db.Model):
    """Order line. unit_price and subtotal are captured at creation and never re-priced."""
    __tablename__ = "order_details"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_details_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_order_details_unit_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": money_to_json(self.unit_price),
            "subtotal": money_to_json(self.subtotal),
            "product": {
                "id": self.product.id,
                "name": self.product.name,
                "image": self.product.image,
                "category_id": self.product.category_id,
            } if self.product else None,
        }
