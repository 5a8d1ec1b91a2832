"""
Reward ledger tests.

Verifies:
- Balance == sum(EARN) - sum(REDEEM), with balance_after snapshots per row
- Redeeming more than the balance is rejected without side effects
- Offers catalog
"""

import pytest

from cafe.models import Customer, RewardTransaction, User
from cafe.models.rewards import REWARD_EARN, REWARD_REDEEM
from cafe.services import rewards_service
from cafe.services.identity_service import OwnerRef
from cafe.validation import NotFoundError, ValidationError


class TestEarnAndRedeem:

    def test_ledger_replays_to_balance(self, db_session, member):
        owner = OwnerRef.user(member.id)

        assert rewards_service.earn_points(owner, 80, {"order_id": None}) == 80
        assert rewards_service.earn_points(owner, 45) == 125
        assert rewards_service.redeem(owner, 40, offer_id="free-topping") == 85

        history = rewards_service.get_history(owner)
        assert [(t.type, t.points, t.balance_after) for t in reversed(history)] == [
            (REWARD_EARN, 80, 80),
            (REWARD_EARN, 45, 125),
            (REWARD_REDEEM, 40, 85),
        ]
        assert history[0].description == "Redeemed 40 points for free-topping"
        assert history[0].offer_id == "free-topping"

        audit = rewards_service.audit_owner(owner)
        assert audit == {
            "owner_kind": "USER",
            "owner_id": member.id,
            "balance": 85,
            "ledger_sum": 85,
            "consistent": True,
        }

    def test_default_earn_descriptions(self, db_session, member):
        owner = OwnerRef.user(member.id)
        rewards_service.earn_points(owner, 10)
        rewards_service.earn_points(owner, 5, {"order_id": 77})

        descriptions = [t.description for t in rewards_service.get_history(owner)]
        assert descriptions == ["Earned 5 points from order #77", "Earned 10 reward points"]

    def test_earn_zero_is_a_no_op(self, db_session, member):
        owner = OwnerRef.user(member.id)
        assert rewards_service.earn_points(owner, 0) == 0
        assert db_session.query(RewardTransaction).count() == 0

    def test_redeem_more_than_balance_rejected(self, db_session, make_customer):
        guest = make_customer("Hoa")
        owner = OwnerRef.customer(guest.id)
        rewards_service.earn_points(owner, 80)

        with pytest.raises(ValidationError, match="Not enough reward points") as exc_info:
            rewards_service.redeem(owner, 100)

        assert exc_info.value.details == {"balance": 80, "requested": 100}
        assert db_session.get(Customer, guest.id).reward_points == 80
        assert db_session.query(RewardTransaction).filter_by(type=REWARD_REDEEM).count() == 0

    def test_redeem_whole_balance(self, db_session, member):
        owner = OwnerRef.user(member.id)
        rewards_service.earn_points(owner, 120)
        assert rewards_service.redeem(owner, 120, offer_id="discount-10") == 0
        assert db_session.get(User, member.id).reward_points == 0

    @pytest.mark.parametrize("points", [0, -5, "abc", 2.5, None, True])
    def test_redeem_requires_positive_integer(self, db_session, member, points):
        with pytest.raises(ValidationError):
            rewards_service.redeem(OwnerRef.user(member.id), points)

    def test_unknown_owner(self, db_session):
        with pytest.raises(NotFoundError):
            rewards_service.get_points(OwnerRef.customer(999))

    def test_deleted_owner_cannot_earn(self, db_session, make_customer):
        guest = make_customer()
        guest.deleted_at = guest.updated_at
        db_session.commit()
        with pytest.raises(NotFoundError):
            rewards_service.earn_points(OwnerRef.customer(guest.id), 10)


class TestOffers:

    def test_static_offer_catalog(self):
        offers = {o["id"]: o["cost"] for o in rewards_service.list_offers()}
        assert offers == {"free-small-drink": 80, "free-topping": 40, "discount-10": 120}

    def test_offers_are_copies(self):
        rewards_service.list_offers()[0]["cost"] = 1
        assert rewards_service.list_offers()[0]["cost"] == 80


class TestOwnerRef:

    def test_both_columns_rejected(self):
        with pytest.raises(ValidationError):
            OwnerRef.from_columns(1, 2)

    def test_anonymous(self):
        assert OwnerRef.from_columns(None, None) is None

    def test_columns(self):
        assert OwnerRef.customer(3).columns() == {"user_id": None, "customer_id": 3}
