from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.stockdesk.core.error_catalog import AppError, ErrorCatalog
from app.stockdesk.core.money import CENT


@dataclass(frozen=True)
class ReportDateRange:
    start_date: date
    end_date: date
    timezone_name: str
    start_utc: datetime
    end_utc: datetime

    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1


def resolve_timezone(timezone_name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "invalid timezone", "timezone": timezone_name},
        ) from exc


def _parse_date(value: str | None, field: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": f"invalid {field} date"}) from exc


def _naive_utc(local_midnight: datetime) -> datetime:
    # Stored timestamps are naive UTC.
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_date_range(
    from_value: str | None,
    to_value: str | None,
    tz: ZoneInfo,
    *,
    default_days: int = 30,
    today: date | None = None,
) -> ReportDateRange:
    """Inclusive local calendar range; ``end_utc`` is the exclusive bound."""
    today = today or datetime.now(tz).date()
    end_date = _parse_date(to_value, "to") or today
    start_date = _parse_date(from_value, "from") or end_date - timedelta(days=default_days - 1)
    if end_date < start_date:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "to must be on or after from"})
    start_local = datetime.combine(start_date, time.min, tzinfo=tz)
    end_local = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)
    return ReportDateRange(
        start_date=start_date,
        end_date=end_date,
        timezone_name=str(tz),
        start_utc=_naive_utc(start_local),
        end_utc=_naive_utc(end_local),
    )


def validate_date_range(date_range: ReportDateRange, *, max_days: int) -> None:
    if max_days <= 0:
        return
    if date_range.days() > max_days:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={
                "message": "date range exceeds limit",
                "reason_code": "REPORT_DATE_RANGE_LIMIT_EXCEEDED",
                "max_days": max_days,
            },
        )


def iter_dates(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def iter_months(start: date, end: date) -> Iterable[tuple[int, int]]:
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def local_date(value: datetime, tz: ZoneInfo) -> date:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).date()


@dataclass(frozen=True)
class MovementBucket:
    month: str
    year: int
    stock_in: int
    stock_out: int


def movement_direction(movement) -> tuple[int, int]:
    """(units in, units out) for one ledger row; adjustments count by sign."""
    if movement.movement_type == "in":
        return movement.quantity, 0
    if movement.movement_type == "out":
        return 0, movement.quantity
    delta = movement.new_quantity - movement.previous_quantity
    if delta >= 0:
        return delta, 0
    return 0, -delta


def monthly_movement_buckets(movements: Iterable, start: date, end: date, tz: ZoneInfo) -> list[MovementBucket]:
    totals: dict[tuple[int, int], list[int]] = defaultdict(lambda: [0, 0])
    for movement in movements:
        day = local_date(movement.created_at, tz)
        units_in, units_out = movement_direction(movement)
        bucket = totals[(day.year, day.month)]
        bucket[0] += units_in
        bucket[1] += units_out
    buckets = []
    for year, month in iter_months(start, end):
        units_in, units_out = totals.get((year, month), (0, 0))
        buckets.append(
            MovementBucket(month=calendar.month_abbr[month], year=year, stock_in=units_in, stock_out=units_out)
        )
    return buckets


@dataclass(frozen=True)
class DailySales:
    business_date: date
    gross_sales: Decimal
    voided_total: Decimal
    net_sales: Decimal
    orders_count: int
    average_ticket: Decimal


def _average(amount: Decimal, count: int) -> Decimal:
    if count <= 0:
        return Decimal("0.00")
    return (amount / count).quantize(CENT)


def daily_sales(transactions: Iterable, date_range: ReportDateRange, tz: ZoneInfo) -> list[DailySales]:
    gross: dict[date, Decimal] = defaultdict(lambda: Decimal("0.00"))
    voided: dict[date, Decimal] = defaultdict(lambda: Decimal("0.00"))
    orders: dict[date, int] = defaultdict(int)
    for transaction in transactions:
        day = local_date(transaction.created_at, tz)
        amount = Decimal(str(transaction.total)).quantize(CENT)
        gross[day] += amount
        if transaction.status == "Voided":
            voided[day] += amount
        else:
            orders[day] += 1

    rows = []
    for day in iter_dates(date_range.start_date, date_range.end_date):
        net = gross[day] - voided[day]
        rows.append(
            DailySales(
                business_date=day,
                gross_sales=gross[day],
                voided_total=voided[day],
                net_sales=net,
                orders_count=orders[day],
                average_ticket=_average(net, orders[day]),
            )
        )
    return rows


@dataclass(frozen=True)
class SalesTotals:
    gross_sales: Decimal
    voided_total: Decimal
    net_sales: Decimal
    orders_count: int
    average_ticket: Decimal


def sales_totals(rows: list[DailySales]) -> SalesTotals:
    gross = sum((row.gross_sales for row in rows), Decimal("0.00"))
    voided = sum((row.voided_total for row in rows), Decimal("0.00"))
    orders = sum(row.orders_count for row in rows)
    net = gross - voided
    return SalesTotals(
        gross_sales=gross,
        voided_total=voided,
        net_sales=net,
        orders_count=orders,
        average_ticket=_average(net, orders),
    )


def months_back(anchor: date, months: int) -> date:
    """First day of the month ``months - 1`` months before ``anchor``'s month."""
    index = anchor.year * 12 + (anchor.month - 1) - (months - 1)
    return date(index // 12, index % 12 + 1, 1)


TURNOVER_WINDOW_DAYS = 30
TURNOVER_PERIODS_PER_YEAR = 12


def outgoing_units(movements: Iterable) -> int:
    return sum(movement.quantity for movement in movements if movement.movement_type == "out")


def turnover_rate(outgoing: int, on_hand: int) -> Decimal:
    """Annualized turnover from one 30-day window of outgoing units."""
    if on_hand <= 0:
        return Decimal("0.00")
    rate = Decimal(outgoing) / Decimal(on_hand) * TURNOVER_PERIODS_PER_YEAR
    return rate.quantize(CENT)


def cost_of_goods_sold(transactions: Iterable, cost_ratio: Decimal) -> tuple[Decimal, int]:
    """(cost, units) for the completed sales' line items.

    Products carry no purchase cost, so cost is the selling price scaled by
    ``cost_ratio``.
    """
    cost = Decimal("0.00")
    units = 0
    for transaction in transactions:
        if transaction.status == "Voided":
            continue
        for item in transaction.items:
            cost += Decimal(str(item.price)) * item.quantity * cost_ratio
            units += item.quantity
    return cost.quantize(CENT), units


@dataclass(frozen=True)
class AverageInventory:
    opening_value: Decimal
    closing_value: Decimal
    average_value: Decimal


def average_inventory(products: Iterable, movements: Iterable, start: datetime, end: datetime) -> AverageInventory:
    """Mean of the opening and closing stock value over ``[start, end)``.

    Quantities at both bounds are rebuilt from today's on-hand levels by
    undoing the ledger rows recorded after each bound. Values use current
    prices.
    """
    since_start: dict = defaultdict(int)
    since_end: dict = defaultdict(int)
    for movement in movements:
        if movement.product_id is None:
            continue
        delta = movement.new_quantity - movement.previous_quantity
        if movement.created_at >= start:
            since_start[movement.product_id] += delta
        if movement.created_at >= end:
            since_end[movement.product_id] += delta

    opening = Decimal("0.00")
    closing = Decimal("0.00")
    for product in products:
        price = Decimal(str(product.price))
        opening += price * max(product.quantity - since_start[product.id], 0)
        closing += price * max(product.quantity - since_end[product.id], 0)
    opening = opening.quantize(CENT)
    closing = closing.quantize(CENT)
    return AverageInventory(
        opening_value=opening,
        closing_value=closing,
        average_value=((opening + closing) / 2).quantize(CENT),
    )
