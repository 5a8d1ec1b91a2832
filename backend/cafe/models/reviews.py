from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ALLOWED_REVIEW_RATINGS = (0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5, 5.0)


class Review(db.Model):
    """Customer review, authored by exactly one User or Customer."""
    __tablename__ = "reviews"
    __table_args__ = (
        db.CheckConstraint(
            "(user_id IS NULL) <> (customer_id IS NULL)",
            name="ck_reviews_single_author",
        ),
        db.CheckConstraint("rating >= 0.5 AND rating <= 5", name="ck_reviews_rating_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)

    comment = db.Column(db.Text, nullable=False)
    rating = db.Column(db.Numeric(2, 1), nullable=False)
    images = db.Column(db.JSON, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")
    customer = db.relationship("Customer", foreign_keys=[customer_id], lazy="joined")

    def to_dict(self) -> dict:
        author_type = "user" if self.user_id else "customer" if self.customer_id else None
        author_name = None
        if self.user is not None:
            author_name = self.user.full_name
        elif self.customer is not None:
            author_name = self.customer.name
        return {
            "id": self.id,
            "comment": self.comment,
            "rating": float(self.rating),
            "images": list(self.images or []),
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "author_type": author_type,
            "author_name": author_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }
