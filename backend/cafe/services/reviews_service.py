# Overview: Customer reviews; admin management and the public listing.

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Review, User
from ..models.reviews import ALLOWED_REVIEW_RATINGS
from ..validation import NotFoundError, ValidationError, optional_int
from ..time_utils import utcnow
from .identity_service import OwnerRef, load_owner


SORTABLE_FIELDS = {
    "created_at": Review.created_at,
    "updated_at": Review.updated_at,
    "rating": Review.rating,
}


def parse_rating(value, field: str = "rating") -> Decimal:
    """Ratings are 0.5..5.0 in half-point steps."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        rating = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not rating.is_finite() or float(rating) not in ALLOWED_REVIEW_RATINGS:
        raise ValidationError(f"{field} must be between 0.5 and 5 in steps of 0.5")
    return rating.quantize(Decimal("0.1"))


def _clean_images(images) -> list[str]:
    if images is None:
        return []
    if not isinstance(images, list):
        raise ValidationError("images must be a list of URLs")
    return [str(url).strip() for url in images if url is not None and str(url).strip()]


def _clean_comment(comment) -> str:
    comment = (comment or "").strip() if isinstance(comment, str) else ""
    if not comment:
        raise ValidationError("comment is required")
    return comment


def _resolve_author(user_id, customer_id) -> OwnerRef:
    user_id = optional_int(user_id, "user_id")
    customer_id = optional_int(customer_id, "customer_id")
    if user_id is None and customer_id is None:
        raise ValidationError("Provide either user_id or customer_id")
    if user_id is not None and customer_id is not None:
        raise ValidationError("Review cannot reference both user_id and customer_id")
    author = OwnerRef.from_columns(user_id, customer_id)
    load_owner(author)
    return author


def create_review(payload: dict, *, actor_id: int | None = None) -> Review:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    author = _resolve_author(payload.get("user_id"), payload.get("customer_id"))
    review = Review(
        **author.columns(),
        comment=_clean_comment(payload.get("comment")),
        rating=parse_rating(payload.get("rating")),
        images=_clean_images(payload.get("images")),
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.session.add(review)
    db.session.commit()
    return review


def get_review(review_id: int, *, include_deleted: bool = False) -> Review:
    query = db.session.query(Review).filter(Review.id == review_id)
    if not include_deleted:
        query = query.filter(Review.deleted_at.is_(None))
    review = query.first()
    if not review:
        raise NotFoundError("Review not found")
    return review


def update_review(review_id: int, patch: dict, *, actor_id: int | None = None) -> Review:
    """Partial update; switching author keeps exactly one of user_id / customer_id."""
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")

    allowed = {"comment", "rating", "images", "user_id", "customer_id"}
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    review = get_review(review_id)

    try:
        if "user_id" in patch or "customer_id" in patch:
            user_id = patch["user_id"] if "user_id" in patch else None
            customer_id = patch["customer_id"] if "customer_id" in patch else None
            # Naming only one side switches to it; the other side is cleared
            if "user_id" not in patch and customer_id is None:
                user_id = review.user_id
            if "customer_id" not in patch and user_id is None:
                customer_id = review.customer_id
            author = _resolve_author(user_id, customer_id)
            for key, value in author.columns().items():
                setattr(review, key, value)

        if "comment" in patch:
            review.comment = _clean_comment(patch["comment"])
        if "rating" in patch:
            review.rating = parse_rating(patch["rating"])
        if "images" in patch:
            review.images = _clean_images(patch["images"])

        review.updated_by = actor_id
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return review


def soft_delete_review(review_id: int, *, actor_id: int | None = None) -> None:
    review = get_review(review_id)
    review.deleted_at = utcnow()
    review.updated_by = actor_id
    db.session.commit()


def _parse_sort(sort: str | None):
    if not sort:
        return [Review.created_at.desc(), Review.id.desc()]
    field, _, direction = sort.partition(":")
    column = SORTABLE_FIELDS.get(field.strip().lower())
    if column is None:
        raise ValidationError(f"sort field must be one of {', '.join(SORTABLE_FIELDS)}")
    direction = (direction or "desc").strip().lower()
    if direction not in ("asc", "desc"):
        raise ValidationError("sort direction must be asc or desc")
    if direction == "asc":
        return [column.asc(), Review.id.asc()]
    return [column.desc(), Review.id.desc()]


def _page(query, page, limit, default_limit: int, order_by) -> dict:
    page = max(page or 1, 1)
    limit = max(1, min(limit or default_limit, 100))
    total = query.count()
    rows = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    return {
        "data": [r.to_dict() for r in rows],
        "page": page,
        "limit": limit,
        "total": total,
    }


def list_reviews(
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    rating=None,
    min_rating=None,
    max_rating=None,
    user_id: int | None = None,
    customer_id: int | None = None,
    sort: str | None = None,
    include_deleted: bool = False,
) -> dict:
    """
    Admin listing.

    Args:
        search: substring of the comment, the user's full_name or the customer's name
        rating / min_rating / max_rating: exact or ranged rating filters
        sort: "field:dir" over created_at, updated_at, rating (default created_at:desc)
        include_deleted: also return soft-deleted reviews
    """
    query = (
        db.session.query(Review)
        .outerjoin(User, Review.user_id == User.id)
        .outerjoin(Customer, Review.customer_id == Customer.id)
    )
    if not include_deleted:
        query = query.filter(Review.deleted_at.is_(None))
    if search and search.strip():
        q = f"%{search.strip()}%"
        query = query.filter(or_(
            Review.comment.ilike(q),
            User.full_name.ilike(q),
            Customer.name.ilike(q),
        ))
    if rating is not None:
        query = query.filter(Review.rating == parse_rating(rating))
    if min_rating is not None:
        query = query.filter(Review.rating >= parse_rating(min_rating, "min_rating"))
    if max_rating is not None:
        query = query.filter(Review.rating <= parse_rating(max_rating, "max_rating"))
    if user_id is not None:
        query = query.filter(Review.user_id == user_id)
    if customer_id is not None:
        query = query.filter(Review.customer_id == customer_id)

    return _page(query, page, limit, 20, _parse_sort(sort))


def list_public_reviews(
    *,
    page: int | None = None,
    limit: int | None = None,
    min_rating=None,
    max_rating=None,
    sort: str | None = None,
) -> dict:
    """Storefront listing: non-deleted reviews only, 10 per page by default."""
    query = db.session.query(Review).filter(Review.deleted_at.is_(None))
    if min_rating is not None:
        query = query.filter(Review.rating >= parse_rating(min_rating, "min_rating"))
    if max_rating is not None:
        query = query.filter(Review.rating <= parse_rating(max_rating, "max_rating"))
    return _page(query, page, limit, 10, _parse_sort(sort))
