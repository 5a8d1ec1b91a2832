# Overview: Guest customer management (CRUD, search, details with order history).

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, Order
from ..validation import ValidationError
from ..time_utils import to_utc_z, utcnow
from .identity_service import ensure_phone_available, get_active_customer, normalize_phone


def create_customer(*, name: str | None, phone_number: str | None = None, image: str | None = None) -> Customer:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    phone = normalize_phone(phone_number)
    ensure_phone_available(phone)

    customer = Customer(name=name, phone_number=phone, image=image, reward_points=0)
    db.session.add(customer)
    db.session.commit()
    return customer


def list_customers(page: int | None = None, limit: int | None = None, search: str | None = None) -> dict:
    """
    Paginated listing (newest first) with optional name/phone search.

    Args:
        page: Page number (1-indexed, default 1)
        limit: Items per page (default 20, max 100)
        search: Case-insensitive substring of name or phone
    """
    page = max(page or 1, 1)
    limit = max(1, min(limit or 20, 100))

    query = db.session.query(Customer).filter(Customer.deleted_at.is_(None))
    if search and search.strip():
        q = f"%{search.strip().lower()}%"
        query = query.filter(or_(func.lower(Customer.name).like(q), Customer.phone_number.like(q)))

    total = query.count()
    rows = (
        query.order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": [c.to_dict() for c in rows],
        "page": page,
        "limit": limit,
        "total": total,
    }


def search_customers(name: str | None = None, phone: str | None = None) -> list[Customer]:
    """Quick lookup for the order screen: exact phone and/or name substring, 20 max."""
    query = db.session.query(Customer).filter(Customer.deleted_at.is_(None))
    phone = normalize_phone(phone)
    if phone:
        query = query.filter(Customer.phone_number == phone)
    if name and name.strip():
        query = query.filter(func.lower(Customer.name).like(f"%{name.strip().lower()}%"))
    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).limit(20).all()


def get_customer_details(customer_id: int) -> dict:
    """Customer with reward balance and an order history summary."""
    customer = get_active_customer(customer_id)
    orders = (
        db.session.query(Order)
        .filter(Order.customer_id == customer.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    data = customer.to_dict()
    data["orders"] = [
        {
            "id": o.id,
            "status": o.status,
            "created_at": to_utc_z(o.created_at),
            "payment_method": o.payment_method,
            "total": float(o.total),
        }
        for o in orders
    ]
    return data


def update_customer(customer_id: int, patch: dict) -> Customer:
    customer = get_active_customer(customer_id)

    try:
        if "phone_number" in patch:
            phone = normalize_phone(patch["phone_number"])
            ensure_phone_available(phone, exclude_customer_id=customer.id)
            customer.phone_number = phone

        if "name" in patch:
            name = (patch["name"] or "").strip()
            if not name:
                raise ValidationError("name cannot be blank")
            customer.name = name

        if "image" in patch:
            customer.image = patch["image"]

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return customer


def soft_delete_customer(customer_id: int) -> None:
    customer = get_active_customer(customer_id)
    customer.deleted_at = utcnow()
    db.session.commit()
