# Overview: Service-layer operations for reporting; revenue and dashboard statistics over PAID orders.

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderDetail, Product
from ..models.catalog import money_to_json
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_PAID,
    ORDER_STATUS_PENDING_PAYMENT,
    PAYMENT_METHOD_BANK_TRANSFER,
    PAYMENT_METHOD_CASH,
)
from ..time_utils import day_bounds, parse_iso_date, utcnow
from ..validation import ValidationError


MAX_RANGE_DAYS = 366
DEFAULT_SALES_WINDOW_DAYS = 7
DEFAULT_TOP_PRODUCTS = 5


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""


def _parse_day(value: str | None, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ReportError(f"{field} must be a date in YYYY-MM-DD format")


def _parse_range(start: str | None, end: str | None, *, default_days: int | None = None) -> tuple[date, date]:
    start_day = _parse_day(start, "start_date")
    end_day = _parse_day(end, "end_date")

    if default_days is not None:
        end_day = end_day or utcnow().date()
        start_day = start_day or end_day - timedelta(days=default_days - 1)
    elif start_day is None or end_day is None:
        raise ReportError("start_date and end_date are required")

    if start_day > end_day:
        raise ReportError("start_date must not be after end_date")
    if (end_day - start_day).days + 1 > MAX_RANGE_DAYS:
        raise ReportError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")
    return start_day, end_day


def _iter_days(start_day: date, end_day: date):
    current = start_day
    while current <= end_day:
        yield current
        current += timedelta(days=1)


def _paid_revenue_query(start: datetime | None = None, end: datetime | None = None):
    query = (
        db.session.query(func.sum(OrderDetail.subtotal))
        .join(Order, OrderDetail.order_id == Order.id)
        .filter(Order.status == ORDER_STATUS_PAID)
    )
    if start is not None:
        query = query.filter(Order.created_at >= start, Order.created_at < end)
    return query


def _as_decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def daily_revenue(day: date) -> dict:
    """PAID orders created on `day` (UTC): count, total and per payment method."""
    start, end = day_bounds(day)
    rows = (
        db.session.query(
            Order.payment_method,
            func.count(func.distinct(Order.id)).label("order_count"),
            func.sum(OrderDetail.subtotal).label("revenue"),
        )
        .join(OrderDetail, OrderDetail.order_id == Order.id)
        .filter(
            Order.status == ORDER_STATUS_PAID,
            Order.created_at >= start,
            Order.created_at < end,
        )
        .group_by(Order.payment_method)
        .all()
    )

    breakdown = {"cash": Decimal("0"), "bank_transfer": Decimal("0")}
    total = Decimal("0")
    order_count = 0
    for row in rows:
        revenue = _as_decimal(row.revenue)
        total += revenue
        order_count += int(row.order_count or 0)
        if row.payment_method == PAYMENT_METHOD_CASH:
            breakdown["cash"] += revenue
        elif row.payment_method == PAYMENT_METHOD_BANK_TRANSFER:
            breakdown["bank_transfer"] += revenue

    return {
        "date": day.isoformat(),
        "total_orders": order_count,
        "total_revenue": money_to_json(total),
        "payment_method_breakdown": {k: money_to_json(v) for k, v in breakdown.items()},
    }


def daily_revenue_report(day: str | None) -> dict:
    """daily_revenue() for a YYYY-MM-DD string (default today)."""
    return daily_revenue(_parse_day(day, "date") or utcnow().date())


def revenue_range(start: str | None, end: str | None) -> list[dict]:
    """One daily report per day, both ends inclusive."""
    start_day, end_day = _parse_range(start, end)
    return [daily_revenue(day) for day in _iter_days(start_day, end_day)]


def top_products(limit: int | None = None) -> list[dict]:
    """Best sellers by quantity over PAID orders."""
    limit = max(1, min(limit or DEFAULT_TOP_PRODUCTS, 50))
    quantity = func.sum(OrderDetail.quantity)
    rows = (
        db.session.query(
            Product.id.label("product_id"),
            Product.name.label("product_name"),
            quantity.label("quantity"),
            func.sum(OrderDetail.subtotal).label("revenue"),
        )
        .join(OrderDetail, OrderDetail.product_id == Product.id)
        .join(Order, OrderDetail.order_id == Order.id)
        .filter(Order.status == ORDER_STATUS_PAID)
        .group_by(Product.id, Product.name)
        .order_by(quantity.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "product_name": row.product_name,
            "quantity": int(row.quantity or 0),
            "revenue": money_to_json(_as_decimal(row.revenue)),
        }
        for row in rows
    ]


def dashboard() -> dict:
    counts = dict(
        db.session.query(Order.status, func.count(Order.id))
        .group_by(Order.status)
        .all()
    )
    today_start, today_end = day_bounds(utcnow().date())

    return {
        "total_orders": sum(counts.values()),
        "pending_orders": counts.get(ORDER_STATUS_PENDING_PAYMENT, 0),
        "paid_orders": counts.get(ORDER_STATUS_PAID, 0),
        "cancelled_orders": counts.get(ORDER_STATUS_CANCELLED, 0),
        "total_revenue": money_to_json(_as_decimal(_paid_revenue_query().scalar())),
        "today_revenue": money_to_json(_as_decimal(_paid_revenue_query(today_start, today_end).scalar())),
        "top_products": top_products(DEFAULT_TOP_PRODUCTS),
    }


def sales_series(start: str | None = None, end: str | None = None) -> list[dict]:
    """Per-day PAID totals; defaults to the last 7 days ending today."""
    start_day, end_day = _parse_range(start, end, default_days=DEFAULT_SALES_WINDOW_DAYS)
    range_start, _ = day_bounds(start_day)
    _, range_end = day_bounds(end_day)

    totals = {day.isoformat(): Decimal("0") for day in _iter_days(start_day, end_day)}
    rows = (
        db.session.query(Order.created_at, OrderDetail.subtotal)
        .join(OrderDetail, OrderDetail.order_id == Order.id)
        .filter(
            Order.status == ORDER_STATUS_PAID,
            Order.created_at >= range_start,
            Order.created_at < range_end,
        )
        .all()
    )
    for created_at, subtotal in rows:
        key = created_at.date().isoformat()
        if key in totals:
            totals[key] += _as_decimal(subtotal)

    return [{"date": day, "total": money_to_json(total)} for day, total in totals.items()]
