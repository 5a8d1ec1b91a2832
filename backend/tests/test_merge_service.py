"""
Identity merge tests (guest Customer -> registered User).
"""

from decimal import Decimal

import pytest

from cafe.models import Customer, Order, Review, RewardTransaction, User
from cafe.services import customers_service, merge_service, orders_service, rewards_service
from cafe.services.identity_service import OwnerRef, ensure_phone_available
from cafe.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def guest_with_history(db_session, make_customer, latte, make_order_payload):
    """A guest with one PAID order (140 points), a redeem and a review."""
    guest = make_customer("Hoa")
    order = orders_service.create_order(make_order_payload(latte, customer_id=guest.id))
    orders_service.update_order(order.id, {"status": "PAID"})
    rewards_service.redeem(OwnerRef.customer(guest.id), 40, offer_id="free-topping")

    db_session.add(Review(customer_id=guest.id, comment="Great latte", rating=Decimal("4.5"), images=[]))
    db_session.commit()
    return guest, order


class TestMergeCustomerToUser:

    def test_dry_run_changes_nothing(self, db_session, guest_with_history, member):
        guest, order = guest_with_history

        result = merge_service.merge_customer_to_user(guest.id, "0900000001")

        assert result["merged"] is False
        assert result["user_id"] == member.id
        assert db_session.get(Customer, guest.id).deleted_at is None
        assert db_session.get(Order, order.id).customer_id == guest.id
        assert db_session.get(User, member.id).reward_points == 0

    def test_confirmed_merge_moves_everything(self, db_session, guest_with_history, member):
        guest, order = guest_with_history
        rewards_service.earn_points(OwnerRef.user(member.id), 20)

        result = merge_service.merge_customer_to_user(guest.id, " 0900000001 ", confirm_merge=True)

        assert result["merged"] is True
        assert result["user_id"] == member.id
        assert result["transferred"]["orders"] == 1
        assert result["transferred"]["reward_transactions"] == 2
        assert result["transferred"]["reviews"] == 1
        assert result["transferred"]["points"] == 100

        moved = db_session.get(Order, order.id)
        assert moved.user_id == member.id
        assert moved.customer_id is None

        assert db_session.get(User, member.id).reward_points == 120
        assert db_session.get(Customer, guest.id).deleted_at is not None
        assert db_session.query(RewardTransaction).filter_by(customer_id=guest.id).count() == 0
        assert db_session.query(Review).filter_by(user_id=member.id).count() == 1

        # No ledger row for the transfer itself; the moved rows keep the sum right
        assert db_session.query(RewardTransaction).filter_by(user_id=member.id).count() == 3
        assert rewards_service.audit_owner(OwnerRef.user(member.id))["consistent"] is True

    def test_merged_customer_cannot_merge_again(self, db_session, guest_with_history, member):
        guest, _ = guest_with_history
        merge_service.merge_customer_to_user(guest.id, "0900000001", confirm_merge=True)

        with pytest.raises(NotFoundError):
            merge_service.merge_customer_to_user(guest.id, "0900000001", confirm_merge=True)
        assert db_session.get(User, member.id).reward_points == 100

    def test_no_user_claims_phone(self, db_session, make_customer):
        guest = make_customer("Hoa")
        result = merge_service.merge_customer_to_user(guest.id, "0988888888")

        assert result == {
            "merged": False,
            "message": "Phone updated for customer (no existing user found)",
        }
        assert db_session.get(Customer, guest.id).phone_number == "0988888888"

    def test_claim_conflicts_with_other_customer(self, db_session, make_customer):
        make_customer("Other", phone_number="0988888888")
        guest = make_customer("Hoa")
        with pytest.raises(ConflictError):
            merge_service.merge_customer_to_user(guest.id, "0988888888")

    def test_blank_phone_rejected(self, db_session, make_customer):
        guest = make_customer("Hoa")
        with pytest.raises(ValidationError, match="Phone is required"):
            merge_service.merge_customer_to_user(guest.id, "   ")

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            merge_service.merge_customer_to_user(404, "0900000001")


class TestPhoneUniqueness:

    def test_customer_phone_cannot_match_user(self, db_session, member):
        with pytest.raises(ConflictError):
            customers_service.create_customer(name="Copy", phone_number="0900000001")

    def test_customer_phone_unique_among_customers(self, db_session, make_customer):
        make_customer("First", phone_number="0911111111")
        with pytest.raises(ConflictError):
            customers_service.create_customer(name="Second", phone_number="0911111111")

    def test_deleted_customer_releases_phone(self, db_session, make_customer):
        first = make_customer("First", phone_number="0911111111")
        customers_service.soft_delete_customer(first.id)
        created = customers_service.create_customer(name="Second", phone_number="0911111111")
        assert created.phone_number == "0911111111"

    def test_identity_may_keep_its_own_phone(self, db_session, member, make_customer):
        guest = make_customer("Hoa", phone_number="0922222222")
        ensure_phone_available("0922222222", exclude_customer_id=guest.id)
        ensure_phone_available("0900000001", exclude_user_id=member.id)

    def test_update_customer_phone_conflict(self, db_session, member, make_customer):
        guest = make_customer("Hoa")
        with pytest.raises(ConflictError):
            customers_service.update_customer(guest.id, {"phone_number": "0900000001"})
