from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ROLE_ROOT = "ROOT"
ROLE_ADMIN = "ADMIN"
ROLE_STAFF = "STAFF"
ROLE_CUSTOMER = "CUSTOMER"
ROLES = (ROLE_ROOT, ROLE_ADMIN, ROLE_STAFF, ROLE_CUSTOMER)


class User(db.Model):
    """
    Registered account (staff or loyalty member).

    Phone numbers are unique across users AND guest customers; that rule spans
    two tables and is enforced in identity_service, not here.
    reward_points is the denormalized balance of the reward ledger; it is only
    written by rewards_service and merge_service.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("reward_points >= 0", name="ck_users_reward_points_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=True, unique=True, index=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_CUSTOMER)

    reward_points = db.Column(db.Integer, nullable=False, default=0)

    # SHA-256 of the currently valid refresh token (rotated on refresh, cleared on logout)
    refresh_token_hash = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        # Never include password_hash or refresh_token_hash
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "reward_points": self.reward_points,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }
