from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from app.stockdesk.core.config import settings
from app.stockdesk.core.deps import get_current_token_data, require_permission
from app.stockdesk.core.money import money
from app.stockdesk.core.scope import resolve_tenant_id
from app.stockdesk.db.session import get_db
from app.stockdesk.repos.cash_drawer import CashDrawerRepository
from app.stockdesk.repos.customers import CustomerRepository
from app.stockdesk.repos.products import ProductRepository
from app.stockdesk.repos.stock_movements import StockMovementRepository
from app.stockdesk.repos.transactions import TransactionRepository
from app.stockdesk.routers.transactions import transaction_summary
from app.stockdesk.schemas.errors import COMMON_ERROR_RESPONSES
from app.stockdesk.schemas.reports import (
    AverageInventoryResponse,
    CogsResponse,
    DashboardResponse,
    InventoryValueResponse,
    SalesReportResponse,
    SalesReportRow,
    SalesReportTotals,
    StatsResponse,
    StockAlert,
    StockAlertsResponse,
    StockMovementBucket,
    StockMovementsReportResponse,
    StockSummary,
    StockTurnoverResponse,
    SystemStats,
    TopProductRow,
    TopProductsResponse,
)
from app.stockdesk.services.inventory import OUT_OF_STOCK, stock_status, summarize_stock
from app.stockdesk.services.reports import (
    TURNOVER_WINDOW_DAYS,
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
from app.stockdesk.services.sales import STATUS_COMPLETED
from app.stockdesk.services.tenant_settings import get_business_settings

router = APIRouter(responses=COMMON_ERROR_RESPONSES)

RECENT_SALES_LIMIT = 5
RECENT_ACTIVITY_DAYS = 7


@router.get("/api/reports/inventory-value", response_model=InventoryValueResponse)
def inventory_value(
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_REPORTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    summary = summarize_stock(ProductRepository(db).list_all(scoped_tenant_id), threshold)
    return InventoryValueResponse(
        inventory_value=summary.inventory_value,
        product_count=summary.total_items,
        unit_count=summary.total_units,
    )


@router.get("/api/reports/top-products", response_model=TopProductsResponse)
def top_products(
    limit: int = Query(default=10, ge=1, le=100),
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_REPORTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    rows = ProductRepository(db).top_by_value(scoped_tenant_id, limit)
    return TopProductsResponse(
        rows=[
            TopProductRow(
                product_id=str(product.id),
                name=product.name,
                sku=product.sku,
                category=product.category,
                quantity=product.quantity,
                price=money(product.price),
                value=money(money(product.price) * max(product.quantity, 0)),
            )
            for product in rows
        ]
    )


@router.get("/api/reports/stock-movements", response_model=StockMovementsReportResponse)
def stock_movement_trends(
    from_value: str | None = Query(default=None, alias="from"),
    to_value: str | None = Query(default=None, alias="to"),
    timezone: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_REPORTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    tz = resolve_timezone(timezone)
    if not from_value:
        anchor = resolve_date_range(None, to_value, tz, default_days=1).end_date
        from_value = months_back(anchor, 6).isoformat()
    date_range = resolve_date_range(from_value, to_value, tz)
    validate_date_range(date_range, max_days=settings.REPORTS_MAX_DATE_RANGE_DAYS)
    movements = StockMovementRepository(db).list_in_range(scoped_tenant_id, date_range.start_utc, date_range.end_utc)
    buckets = monthly_movement_buckets(movements, date_range.start_date, date_range.end_date, tz)
    return StockMovementsReportResponse(
        from_date=date_range.start_date,
        to_date=date_range.end_date,
        rows=[
            StockMovementBucket(month=bucket.month, year=bucket.year, stock_in=bucket.stock_in, stock_out=bucket.stock_out)
            for bucket in buckets
        ],
    )


@router.get("/api/reports/sales", response_model=SalesReportResponse)
def sales_report(
    from_value: str | None = Query(default=None, alias="from"),
    to_value: str | None = Query(default=None, alias="to"),
    timezone: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_REPORTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    tz = resolve_timezone(timezone)
    date_range = resolve_date_range(from_value, to_value, tz)
    validate_date_range(date_range, max_days=settings.REPORTS_MAX_DATE_RANGE_DAYS)
    transactions = TransactionRepository(db).list_in_range(scoped_tenant_id, date_range.start_utc, date_range.end_utc)
    rows = daily_sales(transactions, date_range, tz)
    totals = sales_totals(rows)
    return SalesReportResponse(
        from_date=date_range.start_date,
        to_date=date_range.end_date,
        timezone=date_range.timezone_name,
        rows=[
            SalesReportRow(
                business_date=row.business_date,
                gross_sales=row.gross_sales,
                voided_total=row.voided_total,
                net_sales=row.net_sales,
                orders_count=row.orders_count,
                average_ticket=row.average_ticket,
            )
            for row in rows
        ],
        totals=SalesReportTotals(
            gross_sales=totals.gross_sales,
            voided_total=totals.voided_total,
            net_sales=totals.net_sales,
            orders_count=totals.orders_count,
            average_ticket=totals.average_ticket,
        ),
    )


@router.get("/api/reports/stock-turnover-rate", response_model=StockTurnoverResponse)
def stock_turnover_rate(
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_REPORTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    since = datetime.utcnow() - timedelta(days=TURNOVER_WINDOW_DAYS)
    outgoing = outgoing_units(StockMovementRepository(db).list_since(scoped_tenant_id, since))
    on_hand = sum(max(product.quantity, 0) for product in ProductRepository(db).list_all(scoped_tenant_id))
    return StockTurnoverResponse(
        window_days=TURNOVER_WINDOW_DAYS,
        outgoing_units=outgoing,
        on_hand_units=on_hand,
        turnover_rate=turnover_rate(outgoing, on_hand),
    )


@router.get("/api/reports/cogs", response_model=CogsResponse)
def cogs_report(
    from_value: str | None = Query(default=None, alias="from"),
    to_value: str | None = Query(default=None, alias="to"),
    timezone: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_REPORTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    tz = resolve_timezone(timezone)
    date_range = resolve_date_range(from_value, to_value, tz)
    validate_date_range(date_range, max_days=settings.REPORTS_MAX_DATE_RANGE_DAYS)
    ratio = Decimal(str(settings.COGS_COST_RATIO))
    transactions = TransactionRepository(db).list_in_range(scoped_tenant_id, date_range.start_utc, date_range.end_utc)
    cost, units = cost_of_goods_sold(transactions, ratio)
    return CogsResponse(
        from_date=date_range.start_date,
        to_date=date_range.end_date,
        timezone=date_range.timezone_name,
        cost_ratio=ratio,
        units_sold=units,
        cogs=cost,
    )


@router.get("/api/reports/average-inventory", response_model=AverageInventoryResponse)
def average_inventory_report(
    from_value: str | None = Query(default=None, alias="from"),
    to_value: str | None = Query(default=None, alias="to"),
    timezone: str | None = None,
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_REPORTS")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    tz = resolve_timezone(timezone)
    date_range = resolve_date_range(from_value, to_value, tz)
    validate_date_range(date_range, max_days=settings.REPORTS_MAX_DATE_RANGE_DAYS)
    movements = StockMovementRepository(db).list_since(scoped_tenant_id, date_range.start_utc)
    result = average_inventory(
        ProductRepository(db).list_all(scoped_tenant_id), movements, date_range.start_utc, date_range.end_utc
    )
    return AverageInventoryResponse(
        from_date=date_range.start_date,
        to_date=date_range.end_date,
        timezone=date_range.timezone_name,
        opening_value=result.opening_value,
        closing_value=result.closing_value,
        average_inventory=result.average_value,
    )


@router.get("/api/dashboard", response_model=DashboardResponse)
def dashboard(
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_DASHBOARD")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    transactions = TransactionRepository(db)
    today_start = datetime.combine(datetime.utcnow().date(), datetime.min.time())
    today = [
        row
        for row in transactions.list_in_range(scoped_tenant_id, today_start, today_start + timedelta(days=1))
        if row.status == STATUS_COMPLETED
    ]
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    summary = summarize_stock(ProductRepository(db).list_all(scoped_tenant_id), threshold)
    session = CashDrawerRepository(db).get_open_session(scoped_tenant_id, settings.DEFAULT_REGISTER_NAME)
    return DashboardResponse(
        today_sales_count=len(today),
        today_sales_total=sum((money(row.total) for row in today), money(0)),
        recent_sales=[
            transaction_summary(row, customer_name)
            for row, customer_name in transactions.list_recent(scoped_tenant_id, RECENT_SALES_LIMIT)
        ],
        register_status="open" if session else "closed",
        register_balance=money(session.expected_cash) if session else money(0),
        low_stock_count=summary.low_stock_items,
        out_of_stock_count=summary.out_of_stock_items,
        customer_count=CustomerRepository(db).count(scoped_tenant_id),
    )


@router.get("/api/stats", response_model=StatsResponse)
def stats(
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_INVENTORY")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    products = ProductRepository(db)
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    summary = summarize_stock(products.list_all(scoped_tenant_id), threshold)
    since = datetime.utcnow() - timedelta(days=RECENT_ACTIVITY_DAYS)
    return StatsResponse(
        stock_summary=StockSummary(
            total_items=summary.total_items,
            total_units=summary.total_units,
            low_stock_items=summary.low_stock_items,
            out_of_stock_items=summary.out_of_stock_items,
        ),
        categories=products.distinct_values(scoped_tenant_id, "category"),
        vendors=products.distinct_values(scoped_tenant_id, "vendor"),
        system_stats=SystemStats(
            total_products=summary.total_items,
            total_transactions=TransactionRepository(db).count(scoped_tenant_id),
            recent_activity=StockMovementRepository(db).count_since(scoped_tenant_id, since),
        ),
    )


@router.get("/api/notifications/stock-alerts", response_model=StockAlertsResponse)
def stock_alerts(
    tenant_id: str | None = None,
    token_data=Depends(get_current_token_data),
    _user=Depends(require_permission("VIEW_INVENTORY")),
    db=Depends(get_db),
):
    scoped_tenant_id = resolve_tenant_id(token_data, tenant_id)
    threshold = get_business_settings(db, scoped_tenant_id).low_stock_threshold
    now = datetime.utcnow()
    alerts = []
    for product in ProductRepository(db).list_alerting(scoped_tenant_id, threshold):
        status = stock_status(product.quantity, threshold)
        if status == OUT_OF_STOCK:
            message = f"{product.name} is out of stock"
        else:
            message = f"{product.name} is running low ({product.quantity} left)"
        alerts.append(
            StockAlert(
                product_id=str(product.id),
                name=product.name,
                sku=product.sku,
                quantity=product.quantity,
                threshold=threshold,
                status=status,
                message=message,
                generated_at=now,
            )
        )
    return StockAlertsResponse(alerts=alerts, total=len(alerts))
