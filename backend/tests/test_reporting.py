"""
Reporting tests: revenue and dashboard statistics count PAID orders only.
"""

from datetime import timedelta

import pytest

from cafe.services import orders_service, reporting_service
from cafe.services.reporting_service import ReportError
from cafe.time_utils import utcnow


@pytest.fixture
def sales(db_session, make_product, make_order_payload):
    latte = make_product("Latte", "35000")
    tea = make_product("Peach tea", "45000")

    cash = orders_service.create_order(make_order_payload(latte, quantity=2, unit_price=35000))
    bank = orders_service.create_order({
        "payment_method": "BANK_TRANSFER",
        "order_details": [
            {"product_id": tea.id, "quantity": 3, "unit_price": 45000},
            {"product_id": latte.id, "quantity": 1, "unit_price": 35000},
        ],
    })
    pending = orders_service.create_order(make_order_payload(tea, quantity=5, unit_price=45000))
    cancelled = orders_service.create_order(make_order_payload(latte, quantity=9, unit_price=35000))

    orders_service.update_order(cash.id, {"status": "PAID"})
    orders_service.update_order(bank.id, {"status": "PAID"})
    orders_service.update_order(cancelled.id, {"status": "CANCELLED", "cancellation_reason": "left"})
    return latte, tea, pending


def test_daily_revenue_breakdown(db_session, sales):
    report = reporting_service.daily_revenue(utcnow().date())

    assert report["date"] == utcnow().date().isoformat()
    assert report["total_orders"] == 2
    assert report["total_revenue"] == 240000.0
    assert report["payment_method_breakdown"] == {"cash": 70000.0, "bank_transfer": 170000.0}


def test_daily_revenue_for_empty_day(db_session, sales):
    report = reporting_service.daily_revenue_report("2001-01-01")
    assert report["total_orders"] == 0
    assert report["total_revenue"] == 0.0


def test_revenue_range_has_one_entry_per_day(db_session, sales):
    today = utcnow().date()
    start = (today - timedelta(days=2)).isoformat()

    reports = reporting_service.revenue_range(start, today.isoformat())

    assert [r["date"] for r in reports] == [
        (today - timedelta(days=2)).isoformat(),
        (today - timedelta(days=1)).isoformat(),
        today.isoformat(),
    ]
    assert reports[-1]["total_revenue"] == 240000.0
    assert reports[0]["total_revenue"] == 0.0


@pytest.mark.parametrize("start,end", [
    (None, "2026-01-01"),
    ("2026-01-05", "2026-01-01"),
    ("2026-13-01", "2026-01-01"),
    ("2020-01-01", "2026-01-01"),
])
def test_revenue_range_validation(db_session, start, end):
    with pytest.raises(ReportError):
        reporting_service.revenue_range(start, end)


def test_dashboard(db_session, sales):
    stats = reporting_service.dashboard()

    assert stats["total_orders"] == 4
    assert stats["paid_orders"] == 2
    assert stats["pending_orders"] == 1
    assert stats["cancelled_orders"] == 1
    assert stats["total_revenue"] == 240000.0
    assert stats["today_revenue"] == 240000.0
    assert len(stats["top_products"]) == 2


def test_top_products_ignore_unpaid_orders(db_session, sales):
    latte, tea, _ = sales
    top = reporting_service.top_products()

    assert top == [
        {"product_id": latte.id, "product_name": "Latte", "quantity": 3, "revenue": 105000.0},
        {"product_id": tea.id, "product_name": "Peach tea", "quantity": 3, "revenue": 135000.0},
    ]


def test_sales_series_defaults_to_last_seven_days(db_session, sales):
    series = reporting_service.sales_series()

    assert len(series) == 7
    assert series[-1] == {"date": utcnow().date().isoformat(), "total": 240000.0}
    assert all(point["total"] == 0.0 for point in series[:-1])
