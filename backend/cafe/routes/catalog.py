# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/cafe/routes/catalog.py
"""
Category and product routes.

Reads are public (menu display). Writes require ADMIN or STAFF.
"""
from flask import Blueprint, current_app, request

from ..decorators import STAFF_ROLES, require_auth, require_role
from ..models import Category, Product
from ..models.catalog import PRODUCT_STATUSES
from ..services import catalog_service
from ..validation import NotFoundError, PayloadPolicy, ValidationError, clean_payload

CATEGORY_POLICY = PayloadPolicy(
    writable=frozenset({"name", "description"}),
    required=frozenset({"name"}),
)

PRODUCT_POLICY = PayloadPolicy(
    writable=frozenset({"name", "description", "price", "image", "status", "category_id"}),
    required=frozenset({"name", "price", "category_id"}),
    choices={"status": PRODUCT_STATUSES},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")


# =============================================================================
# CATEGORIES
# =============================================================================

@categories_bp.get("")
def list_categories_route():
    return {"categories": [c.to_dict() for c in catalog_service.list_categories()]}


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        return catalog_service.get_category(category_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@categories_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = clean_payload(Category, payload, CATEGORY_POLICY, partial=False)
        created = catalog_service.create_category(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return created.to_dict(), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = clean_payload(Category, payload, CATEGORY_POLICY, partial=True)
        updated = catalog_service.update_category(category_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return updated.to_dict(), 200


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role(*STAFF_ROLES)
def delete_category_route(category_id: int):
    try:
        catalog_service.soft_delete_category(category_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
def list_products_route():
    """
    List non-deleted products, newest first.

    Query params:
    - category_id: int (optional) - filter by category
    """
    category_id = request.args.get("category_id", type=int)
    products = catalog_service.list_products(category_id=category_id)
    return {"products": [p.to_dict() for p in products]}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return catalog_service.get_product(product_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = clean_payload(Product, payload, PRODUCT_POLICY, partial=False)
        created = catalog_service.create_product(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500
    return created.to_dict(), 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = clean_payload(Product, payload, PRODUCT_POLICY, partial=True)
        updated = catalog_service.update_product(product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500
    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(*STAFF_ROLES)
def delete_product_route(product_id: int):
    try:
        catalog_service.soft_delete_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200
