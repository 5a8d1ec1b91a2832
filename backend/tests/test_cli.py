"""
CLI command tests (flask users / orders / rewards groups).
"""

import pytest

from cafe.models import User
from cafe.services import orders_service, rewards_service
from cafe.validation import PartialFailureError


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_create_admin(runner, db_session):
    result = runner.invoke(args=[
        "users", "create-admin",
        "--email", "Boss@Cafe.test",
        "--full-name", "Boss",
        "--password", "secret123",
        "--role", "staff",
    ])

    assert result.exit_code == 0, result.output
    assert "PASS Created user: boss@cafe.test" in result.output
    user = db_session.query(User).filter_by(email="boss@cafe.test").one()
    assert user.role == "STAFF"


def test_create_admin_duplicate_email(runner, db_session, admin):
    result = runner.invoke(args=[
        "users", "create-admin",
        "--email", "admin@cafe.test",
        "--full-name", "Again",
        "--password", "secret123",
    ])
    assert result.exit_code != 0
    assert "already registered" in result.output


def test_pending_credits_and_credit_points(runner, db_session, member, latte, make_order_payload, monkeypatch):
    order = orders_service.create_order(make_order_payload(latte, user_id=member.id))

    def _boom(*args, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(rewards_service, "_earn_locked", _boom)
    with pytest.raises(PartialFailureError):
        orders_service.update_order(order.id, {"status": "PAID"})
    monkeypatch.undo()

    listing = runner.invoke(args=["orders", "pending-credits"])
    assert listing.exit_code == 0
    assert f"USER:{member.id}" in listing.output
    assert "1 order(s)" in listing.output

    credited = runner.invoke(args=["orders", "credit-points", str(order.id)])
    assert "PASS Credited 140 points" in credited.output

    again = runner.invoke(args=["orders", "credit-points", str(order.id)])
    assert again.output.startswith("SKIP")

    assert "PASS No orders" in runner.invoke(args=["orders", "pending-credits"]).output


def test_rewards_audit(runner, db_session, make_customer):
    guest = make_customer("Hoa")
    result = runner.invoke(args=["rewards", "audit", "--customer-id", str(guest.id)])
    assert result.exit_code == 0
    assert result.output.startswith("PASS CUSTOMER")

    # Balance edited outside the ledger
    guest.reward_points = 50
    db_session.commit()
    result = runner.invoke(args=["rewards", "audit", "--customer-id", str(guest.id)])
    assert result.exit_code == 1
    assert "FAIL" in result.output


def test_rewards_audit_requires_one_owner(runner, db_session):
    result = runner.invoke(args=["rewards", "audit"])
    assert result.exit_code == 2
