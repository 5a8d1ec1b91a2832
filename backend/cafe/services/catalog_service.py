# backend/cafe/services/catalog_service.py
"""
Catalog Service (categories and products)

The order engine consumes two operations from here:
- get_product(): resolve a non-deleted product or fail with NotFoundError
- increment_sales_count(): additive UPDATE that joins the caller's transaction

Everything else is plain CRUD with soft delete.
"""
from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Category, Product
from ..validation import NotFoundError, ValidationError
from ..time_utils import utcnow

CATEGORY_MUTABLE_FIELDS = {"name", "description"}
PRODUCT_MUTABLE_FIELDS = {"name", "description", "price", "image", "status", "category_id"}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories() -> list[Category]:
    return (
        db.session.query(Category)
        .filter(Category.deleted_at.is_(None))
        .order_by(Category.name.asc(), Category.id.asc())
        .all()
    )


def get_category(category_id: int) -> Category:
    category = (
        db.session.query(Category)
        .filter(Category.id == category_id, Category.deleted_at.is_(None))
        .first()
    )
    if not category:
        raise NotFoundError(f"Category with ID {category_id} not found")
    return category


def create_category(*, patch: dict) -> Category:
    category = Category()
    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, *, patch: dict) -> Category:
    category = get_category(category_id)
    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    db.session.commit()
    return category


def soft_delete_category(category_id: int) -> None:
    category = get_category(category_id)
    in_use = (
        db.session.query(Product.id)
        .filter(Product.category_id == category_id, Product.deleted_at.is_(None))
        .first()
    )
    if in_use:
        raise ValidationError("Category still has active products")
    category.deleted_at = utcnow()
    db.session.commit()


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(category_id: int | None = None) -> list[Product]:
    query = db.session.query(Product).filter(Product.deleted_at.is_(None))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    product = (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.deleted_at.is_(None))
        .first()
    )
    if not product:
        raise NotFoundError(f"Product with ID {product_id} not found")
    return product


def create_product(*, patch: dict) -> Product:
    """Create product from a validated patch; the category must exist."""
    get_category(patch["category_id"])

    product = Product(sales_count=0)
    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, *, patch: dict) -> Product:
    product = get_product(product_id)
    if patch.get("category_id") is not None:
        get_category(patch["category_id"])

    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
    db.session.commit()
    return product


def soft_delete_product(product_id: int) -> None:
    product = get_product(product_id)
    product.deleted_at = utcnow()
    db.session.commit()


def increment_sales_count(product_id: int, by_quantity: int) -> None:
    """
    Additive sales counter bump.

    Runs inside the caller's transaction (no commit here) and is computed in
    SQL, so concurrent increments never overwrite each other.
    """
    if by_quantity <= 0:
        raise ValidationError("Sales count increments must be positive")
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(sales_count=Product.sales_count + by_quantity)
        .execution_options(synchronize_session=False)
    )
