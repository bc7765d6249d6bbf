from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from app.stockdesk.schemas.transactions import TransactionSummary


class InventoryValueResponse(BaseModel):
    inventory_value: Decimal
    product_count: int
    unit_count: int


class TopProductRow(BaseModel):
    product_id: str
    name: str
    sku: str
    category: str | None
    quantity: int
    price: Decimal
    value: Decimal


class TopProductsResponse(BaseModel):
    rows: list[TopProductRow]


class StockMovementBucket(BaseModel):
    month: str
    year: int
    stock_in: int
    stock_out: int


class StockMovementsReportResponse(BaseModel):
    from_date: date
    to_date: date
    rows: list[StockMovementBucket]


class SalesReportRow(BaseModel):
    business_date: date
    gross_sales: Decimal
    voided_total: Decimal
    net_sales: Decimal
    orders_count: int
    average_ticket: Decimal


class SalesReportTotals(BaseModel):
    gross_sales: Decimal
    voided_total: Decimal
    net_sales: Decimal
    orders_count: int
    average_ticket: Decimal


class SalesReportResponse(BaseModel):
    from_date: date
    to_date: date
    timezone: str
    rows: list[SalesReportRow]
    totals: SalesReportTotals


class DashboardResponse(BaseModel):
    today_sales_count: int
    today_sales_total: Decimal
    recent_sales: list[TransactionSummary]
    register_status: str
    register_balance: Decimal
    low_stock_count: int
    out_of_stock_count: int
    customer_count: int


class StockSummary(BaseModel):
    total_items: int
    total_units: int
    low_stock_items: int
    out_of_stock_items: int


class SystemStats(BaseModel):
    total_products: int
    total_transactions: int
    recent_activity: int


class StatsResponse(BaseModel):
    stock_summary: StockSummary
    categories: list[str]
    vendors: list[str]
    system_stats: SystemStats


class StockAlert(BaseModel):
    product_id: str
    name: str
    sku: str
    quantity: int
    threshold: int
    status: str
    message: str
    generated_at: datetime


class StockAlertsResponse(BaseModel):
    alerts: list[StockAlert]
    total: int


class StockTurnoverResponse(BaseModel):
    window_days: int
    outgoing_units: int
    on_hand_units: int
    turnover_rate: Decimal


class CogsResponse(BaseModel):
    from_date: date
    to_date: date
    timezone: str
    cost_ratio: Decimal
    units_sold: int
    cogs: Decimal


class AverageInventoryResponse(BaseModel):
    from_date: date
    to_date: date
    timezone: str
    opening_value: Decimal
    closing_value: Decimal
    average_inventory: Decimal
