# Overview: Identity store lookups shared by orders, rewards, customers and auth.

"""
Identity Store

Two identity kinds coexist:
- User: registered account (email + password + role)
- Customer: guest record (name, optional phone), created at the counter

Rows that need an owner (orders, reviews, reward transactions) store
user_id / customer_id. Inside the service layer the owner travels as an
OwnerRef so callers never juggle two nullable ids.

PHONE RULE: a phone number belongs to at most one non-deleted User OR one
non-deleted Customer. No single DB constraint spans both tables, so every
write path that sets a phone calls ensure_phone_available() first.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, User
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update


OWNER_USER = "USER"
OWNER_CUSTOMER = "CUSTOMER"


@dataclass(frozen=True)
class OwnerRef:
    kind: str
    id: int

    def __post_init__(self):
        if self.kind not in (OWNER_USER, OWNER_CUSTOMER):
            raise ValueError(f"Unknown owner kind: {self.kind}")

    @classmethod
    def user(cls, user_id: int) -> "OwnerRef":
        return cls(OWNER_USER, user_id)

    @classmethod
    def customer(cls, customer_id: int) -> "OwnerRef":
        return cls(OWNER_CUSTOMER, customer_id)

    @classmethod
    def from_columns(cls, user_id: int | None, customer_id: int | None) -> "OwnerRef | None":
        """Owner of a row with user_id / customer_id columns (None if anonymous)."""
        if user_id is not None and customer_id is not None:
            raise ValidationError("Row cannot reference both user and customer")
        if user_id is not None:
            return cls.user(user_id)
        if customer_id is not None:
            return cls.customer(customer_id)
        return None

    def columns(self) -> dict:
        """user_id / customer_id keyword arguments for this owner."""
        if self.kind == OWNER_USER:
            return {"user_id": self.id, "customer_id": None}
        return {"user_id": None, "customer_id": self.id}

    def filter(self, model):
        """SQL criterion selecting the rows of `model` owned by this ref."""
        if self.kind == OWNER_USER:
            return model.user_id == self.id
        return model.customer_id == self.id


def normalize_phone(phone: str | None) -> str | None:
    if phone is None:
        return None
    phone = str(phone).strip()
    return phone or None


def find_user_by_phone(phone: str) -> User | None:
    return (
        db.session.query(User)
        .filter(User.phone == phone, User.deleted_at.is_(None))
        .first()
    )


def find_customer_by_phone(phone: str, exclude_id: int | None = None) -> Customer | None:
    query = db.session.query(Customer).filter(
        Customer.phone_number == phone,
        Customer.deleted_at.is_(None),
    )
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    return query.first()


def find_customer_by_name_and_null_phone(name: str) -> Customer | None:
    """Case-insensitive name match among phone-less, non-deleted guests (oldest first)."""
    return (
        db.session.query(Customer)
        .filter(
            Customer.deleted_at.is_(None),
            Customer.phone_number.is_(None),
            func.lower(Customer.name) == name.lower(),
        )
        .order_by(Customer.id.asc())
        .first()
    )


def ensure_phone_available(
    phone: str | None,
    *,
    exclude_user_id: int | None = None,
    exclude_customer_id: int | None = None,
) -> None:
    """
    Raise ConflictError if another identity already owns `phone`.

    The exclude_* ids let an identity keep (re-save) its own number.
    """
    if not phone:
        return

    customer = find_customer_by_phone(phone, exclude_id=exclude_customer_id)
    if customer is not None:
        raise ConflictError("Phone number already exists for another customer")

    user = find_user_by_phone(phone)
    if user is not None and user.id != exclude_user_id:
        raise ConflictError("Phone number already exists for a registered user")


def get_active_user(user_id: int, *, for_update: bool = False) -> User:
    query = db.session.query(User).filter(User.id == user_id, User.deleted_at.is_(None))
    if for_update:
        query = lock_for_update(query)
    user = query.first()
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


def get_active_customer(customer_id: int, *, for_update: bool = False) -> Customer:
    query = db.session.query(Customer).filter(Customer.id == customer_id, Customer.deleted_at.is_(None))
    if for_update:
        query = lock_for_update(query)
    customer = query.first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def load_owner(owner: OwnerRef, *, for_update: bool = False) -> User | Customer:
    """Resolve an OwnerRef to its (non-deleted) User or Customer row."""
    if owner.kind == OWNER_USER:
        return get_active_user(owner.id, for_update=for_update)
    return get_active_customer(owner.id, for_update=for_update)
