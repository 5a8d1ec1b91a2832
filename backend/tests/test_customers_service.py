import pytest

from cafe.services import customers_service, orders_service
from cafe.validation import NotFoundError, ValidationError


def test_list_customers_paginates_and_searches(db_session, make_customer):
    for i in range(5):
        make_customer(f"Guest {i}", phone_number=f"09000000{i}0")
    make_customer("Minh Anh")

    page = customers_service.list_customers(page=2, limit=2)
    assert page["total"] == 6
    assert page["page"] == 2
    assert len(page["data"]) == 2

    found = customers_service.list_customers(search="minh")
    assert [c["name"] for c in found["data"]] == ["Minh Anh"]

    by_phone = customers_service.list_customers(search="0900000030")
    assert [c["name"] for c in by_phone["data"]] == ["Guest 3"]


def test_limit_is_capped(db_session):
    assert customers_service.list_customers(limit=1000)["limit"] == 100


def test_search_by_exact_phone_and_name(db_session, make_customer):
    make_customer("Hoa", phone_number="0911111111")
    make_customer("Hoang")

    assert [c.name for c in customers_service.search_customers(phone="0911111111")] == ["Hoa"]
    assert {c.name for c in customers_service.search_customers(name="hoa")} == {"Hoa", "Hoang"}


def test_details_include_order_history(db_session, make_customer, latte, make_order_payload):
    guest = make_customer("Hoa")
    order = orders_service.create_order(make_order_payload(latte, customer_id=guest.id))

    details = customers_service.get_customer_details(guest.id)
    assert details["name"] == "Hoa"
    assert details["orders"][0]["id"] == order.id
    assert details["orders"][0]["total"] == 140000.0


def test_create_requires_name(db_session):
    with pytest.raises(ValidationError):
        customers_service.create_customer(name="  ")


def test_soft_deleted_customer_is_hidden(db_session, make_customer):
    guest = make_customer("Hoa")
    customers_service.soft_delete_customer(guest.id)

    with pytest.raises(NotFoundError):
        customers_service.get_customer_details(guest.id)
    assert customers_service.list_customers()["total"] == 0


def test_rejected_update_leaves_no_partial_changes(db_session, make_customer):
    guest = make_customer("Hoa")

    with pytest.raises(ValidationError):
        customers_service.update_customer(guest.id, {"phone_number": "0999999999", "name": "  "})
    db_session.commit()

    stored = customers_service.get_customer_details(guest.id)
    assert stored["phone_number"] is None
    assert stored["name"] == "Hoa"
