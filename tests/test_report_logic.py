from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from app.stockdesk.core.error_catalog import AppError
from app.stockdesk.services.reports import (
    average_inventory,
    cost_of_goods_sold,
    daily_sales,
    monthly_movement_buckets,
    months_back,
    outgoing_units,
    resolve_date_range,
    resolve_timezone,
    sales_totals,
    turnover_rate,
    validate_date_range,
)
from app.stockdesk.services.sales import compute_totals, generate_reference

UTC = ZoneInfo("UTC")


def _movement(kind, quantity, created_at, previous=0, new=0):
    return SimpleNamespace(
        movement_type=kind,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        created_at=created_at,
    )


def test_monthly_buckets_cover_every_month_in_order():
    movements = [
        _movement("in", 10, datetime(2026, 1, 5)),
        _movement("out", 4, datetime(2026, 1, 20)),
        _movement("adjustment", 3, datetime(2026, 3, 2), previous=10, new=7),
        _movement("adjustment", 5, datetime(2026, 3, 9), previous=7, new=12),
    ]

    buckets = monthly_movement_buckets(movements, date(2026, 1, 1), date(2026, 3, 31), UTC)

    assert [(b.month, b.year) for b in buckets] == [("Jan", 2026), ("Feb", 2026), ("Mar", 2026)]
    assert (buckets[0].stock_in, buckets[0].stock_out) == (10, 4)
    assert (buckets[1].stock_in, buckets[1].stock_out) == (0, 0)
    assert (buckets[2].stock_in, buckets[2].stock_out) == (5, 3)


def test_buckets_use_local_calendar():
    late_utc = _movement("in", 2, datetime(2026, 2, 1, 3, 0))
    buckets = monthly_movement_buckets([late_utc], date(2026, 1, 1), date(2026, 2, 28), ZoneInfo("America/New_York"))
    assert buckets[0].stock_in == 2
    assert buckets[1].stock_in == 0


def test_months_back_crosses_year_boundary():
    assert months_back(date(2026, 3, 15), 6) == date(2025, 10, 1)
    assert months_back(date(2026, 12, 1), 1) == date(2026, 12, 1)


def test_resolve_date_range_defaults_and_limits():
    date_range = resolve_date_range(None, None, UTC, default_days=7, today=date(2026, 5, 10))
    assert date_range.start_date == date(2026, 5, 4)
    assert date_range.end_utc == datetime(2026, 5, 11)
    assert date_range.days() == 7

    with pytest.raises(AppError):
        resolve_date_range("2026-05-10", "2026-05-01", UTC)
    with pytest.raises(AppError):
        validate_date_range(resolve_date_range("2025-01-01", "2026-05-01", UTC), max_days=366)
    with pytest.raises(AppError):
        resolve_timezone("Mars/Olympus")


def test_daily_sales_separates_voided_totals():
    date_range = resolve_date_range("2026-04-01", "2026-04-02", UTC)
    transactions = [
        SimpleNamespace(created_at=datetime(2026, 4, 1, 10), total=50.0, status="Completed"),
        SimpleNamespace(created_at=datetime(2026, 4, 1, 12), total=30.0, status="Completed"),
        SimpleNamespace(created_at=datetime(2026, 4, 1, 15), total=20.0, status="Voided"),
    ]

    rows = daily_sales(transactions, date_range, UTC)

    assert len(rows) == 2
    assert rows[0].gross_sales == Decimal("100.00")
    assert rows[0].voided_total == Decimal("20.00")
    assert rows[0].net_sales == Decimal("80.00")
    assert rows[0].orders_count == 2
    assert rows[0].average_ticket == Decimal("40.00")
    assert rows[1].orders_count == 0

    totals = sales_totals(rows)
    assert totals.net_sales == Decimal("80.00")
    assert totals.average_ticket == Decimal("40.00")


def test_compute_totals_taxes_discounted_subtotal():
    totals = compute_totals([(Decimal("10.00"), 3), (Decimal("2.50"), 2)], Decimal("5"), Decimal("10"))
    assert totals.subtotal == Decimal("35.00")
    assert totals.discount == Decimal("5.00")
    assert totals.tax == Decimal("3.00")
    assert totals.total == Decimal("33.00")


def test_compute_totals_rejects_discount_above_subtotal():
    with pytest.raises(AppError):
        compute_totals([(Decimal("1.00"), 1)], Decimal("2"), Decimal("0"))


def test_generate_reference_format():
    reference = generate_reference(datetime(2026, 4, 1, 9, 30, 5))
    assert reference.startswith("SALE-20260401093005-")
    assert len(reference.rsplit("-", 1)[1]) == 6


def test_turnover_rate_annualizes_outgoing_units():
    movements = [
        _movement("out", 5, datetime(2026, 3, 1)),
        _movement("in", 40, datetime(2026, 3, 2)),
        _movement("out", 1, datetime(2026, 3, 3)),
    ]
    assert outgoing_units(movements) == 6
    assert turnover_rate(6, 24) == Decimal("3.00")
    assert turnover_rate(1, 3) == Decimal("4.00")


def test_turnover_rate_is_zero_without_stock():
    assert turnover_rate(8, 0) == Decimal("0.00")
    assert turnover_rate(0, 50) == Decimal("0.00")


def test_cogs_skips_voided_sales():
    def sale(status, *lines):
        return SimpleNamespace(
            status=status,
            items=[SimpleNamespace(price=price, quantity=qty) for price, qty in lines],
        )

    transactions = [
        sale("Completed", (10.0, 2), (2.5, 4)),
        sale("Voided", (99.0, 1)),
    ]
    cost, units = cost_of_goods_sold(transactions, Decimal("0.7"))
    assert cost == Decimal("21.00")
    assert units == 6


def test_average_inventory_rebuilds_bounds_from_ledger():
    product_id = "p-1"
    products = [SimpleNamespace(id=product_id, price=2.0, quantity=30)]
    movements = [
        SimpleNamespace(product_id=product_id, previous_quantity=10, new_quantity=25, created_at=datetime(2026, 3, 5)),
        SimpleNamespace(product_id=product_id, previous_quantity=25, new_quantity=30, created_at=datetime(2026, 4, 2)),
        SimpleNamespace(product_id=None, previous_quantity=0, new_quantity=9, created_at=datetime(2026, 3, 6)),
    ]

    result = average_inventory(products, movements, datetime(2026, 3, 1), datetime(2026, 4, 1))

    assert result.opening_value == Decimal("20.00")
    assert result.closing_value == Decimal("50.00")
    assert result.average_value == Decimal("35.00")
