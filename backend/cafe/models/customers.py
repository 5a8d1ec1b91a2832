from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Guest (walk-in) identity.

    Created implicitly when an order names a customer that does not exist yet,
    or explicitly by staff. Once the same person registers (or staff merges the
    record), everything it owns moves to the User and this row is soft-deleted.

    phone_number is unique among non-deleted customers; a partial unique index
    would be dialect-specific, so the rule lives in identity_service together
    with the cross-table User.phone check.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("reward_points >= 0", name="ck_customers_reward_points_non_negative"),
        db.Index("ix_customers_phone_deleted", "phone_number", "deleted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone_number = db.Column(db.String(20), nullable=True)
    image = db.Column(db.String(500), nullable=True)

    reward_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone_number": self.phone_number,
            "image": self.image,
            "reward_points": self.reward_points,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
