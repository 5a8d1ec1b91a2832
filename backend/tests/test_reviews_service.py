"""
Review service tests.
"""

import pytest

from cafe.services import reviews_service
from cafe.validation import NotFoundError, ValidationError


@pytest.fixture
def reviews(db_session, make_customer, member, admin):
    guest = make_customer("Hoa Tran")
    first = reviews_service.create_review(
        {"customer_id": guest.id, "comment": "Lovely cold brew", "rating": 5},
        actor_id=admin.id,
    )
    second = reviews_service.create_review(
        {"user_id": member.id, "comment": "A bit too sweet", "rating": "2.5"},
        actor_id=admin.id,
    )
    third = reviews_service.create_review(
        {"user_id": member.id, "comment": "Fine", "rating": 3.5},
        actor_id=admin.id,
    )
    return guest, first, second, third


class TestCreateReview:

    def test_author_fields_and_images(self, db_session, member, admin):
        review = reviews_service.create_review(
            {
                "user_id": member.id,
                "comment": "  Great  ",
                "rating": 4.5,
                "images": [" https://img/1.jpg ", "", "   ", "https://img/2.jpg"],
            },
            actor_id=admin.id,
        )
        data = review.to_dict()
        assert data["comment"] == "Great"
        assert data["rating"] == 4.5
        assert data["images"] == ["https://img/1.jpg", "https://img/2.jpg"]
        assert data["author_type"] == "user"
        assert data["author_name"] == "Lan Nguyen"
        assert review.created_by == admin.id

    def test_requires_an_author(self, db_session):
        with pytest.raises(ValidationError, match="Provide either"):
            reviews_service.create_review({"comment": "x", "rating": 4})

    def test_rejects_two_authors(self, db_session, member, make_customer):
        guest = make_customer()
        with pytest.raises(ValidationError, match="both"):
            reviews_service.create_review(
                {"user_id": member.id, "customer_id": guest.id, "comment": "x", "rating": 4}
            )

    def test_unknown_author(self, db_session):
        with pytest.raises(NotFoundError):
            reviews_service.create_review({"customer_id": 321, "comment": "x", "rating": 4})

    @pytest.mark.parametrize("rating", [0, 4.3, 5.5, "abc", None, True])
    def test_rating_must_be_half_steps(self, db_session, member, rating):
        with pytest.raises(ValidationError):
            reviews_service.create_review({"user_id": member.id, "comment": "x", "rating": rating})


class TestListReviews:

    def test_default_sort_is_newest_first(self, db_session, reviews):
        _, first, second, third = reviews
        result = reviews_service.list_reviews()
        assert [r["id"] for r in result["data"]] == [third.id, second.id, first.id]
        assert result["total"] == 3
        assert result["limit"] == 20

    def test_sort_by_rating(self, db_session, reviews):
        _, first, second, third = reviews
        result = reviews_service.list_reviews(sort="rating:asc")
        assert [r["id"] for r in result["data"]] == [second.id, third.id, first.id]

    def test_invalid_sort(self, db_session, reviews):
        with pytest.raises(ValidationError):
            reviews_service.list_reviews(sort="comment:asc")

    def test_rating_filters(self, db_session, reviews):
        _, first, _, third = reviews
        result = reviews_service.list_reviews(min_rating="3", max_rating="4")
        assert [r["id"] for r in result["data"]] == [third.id]
        assert [r["id"] for r in reviews_service.list_reviews(rating=5)["data"]] == [first.id]

    def test_search_matches_comment_and_author(self, db_session, reviews):
        _, first, second, third = reviews
        assert [r["id"] for r in reviews_service.list_reviews(search="cold")["data"]] == [first.id]
        assert [r["id"] for r in reviews_service.list_reviews(search="hoa")["data"]] == [first.id]
        by_user = reviews_service.list_reviews(search="nguyen")["data"]
        assert {r["id"] for r in by_user} == {second.id, third.id}

    def test_owner_filters(self, db_session, reviews, member):
        guest, first, _, _ = reviews
        assert reviews_service.list_reviews(user_id=member.id)["total"] == 2
        assert [r["id"] for r in reviews_service.list_reviews(customer_id=guest.id)["data"]] == [first.id]

    def test_soft_delete_hides_from_public(self, db_session, reviews, admin):
        _, first, _, _ = reviews
        reviews_service.soft_delete_review(first.id, actor_id=admin.id)

        public = reviews_service.list_public_reviews()
        assert first.id not in [r["id"] for r in public["data"]]
        assert public["limit"] == 10
        assert reviews_service.list_reviews()["total"] == 2
        assert reviews_service.list_reviews(include_deleted=True)["total"] == 3

        with pytest.raises(NotFoundError):
            reviews_service.get_review(first.id)

    def test_pagination(self, db_session, reviews):
        page = reviews_service.list_public_reviews(page=2, limit=2)
        assert page["total"] == 3
        assert len(page["data"]) == 1


class TestUpdateReview:

    def test_switch_author_keeps_exclusivity(self, db_session, reviews, member, admin):
        _, first, _, _ = reviews
        updated = reviews_service.update_review(first.id, {"user_id": member.id}, actor_id=admin.id)
        assert updated.user_id == member.id
        assert updated.customer_id is None

    def test_clearing_the_only_author_is_rejected(self, db_session, reviews):
        _, _, second, _ = reviews
        with pytest.raises(ValidationError):
            reviews_service.update_review(second.id, {"user_id": None})

    def test_partial_update(self, db_session, reviews, admin):
        _, first, _, _ = reviews
        updated = reviews_service.update_review(
            first.id, {"rating": 4, "images": ["https://img/3.jpg"]}, actor_id=admin.id
        )
        assert float(updated.rating) == 4.0
        assert updated.images == ["https://img/3.jpg"]
        assert updated.comment == "Lovely cold brew"
        assert updated.updated_by == admin.id

    def test_unknown_field(self, db_session, reviews):
        _, first, _, _ = reviews
        with pytest.raises(ValidationError):
            reviews_service.update_review(first.id, {"deleted_at": None})

    def test_rejected_update_leaves_no_partial_changes(self, db_session, reviews, member):
        guest, first, _, _ = reviews

        with pytest.raises(ValidationError):
            reviews_service.update_review(first.id, {"user_id": member.id, "comment": "Changed", "rating": 7})
        db_session.commit()

        stored = reviews_service.get_review(first.id)
        assert stored.customer_id == guest.id
        assert stored.user_id is None
        assert stored.comment == "Lovely cold brew"
        assert float(stored.rating) == 5.0
