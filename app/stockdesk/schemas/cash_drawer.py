from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CashDrawerActionRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {"action": "open", "denominations": {"$20 Bills": 5, "Quarters": 8}},
                {"action": "payout", "amount": "12.50", "reason": "Window cleaner"},
                {"action": "close", "denominations": {"$100 Bills": 1, "$20 Bills": 4}},
            ]
        },
        "populate_by_name": True,
    }

    action: str = Field(min_length=1)
    amount: Decimal | None = None
    denominations: dict[str, int] | None = None
    reason: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=500)
    reference: str | None = Field(default=None, max_length=100)
    register_name: str | None = Field(default=None, alias="register", max_length=100)


class DrawerStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_open: bool
    register_name: str = Field(alias="register")
    session_id: str | None
    opened_at: datetime | None
    opened_by: str | None
    opening_balance: Decimal
    current_balance: Decimal
    cash_sales: Decimal
    card_sales: Decimal
    mobile_sales: Decimal
    cash_payouts: Decimal
    cash_in: Decimal
    cash_refunds: Decimal
    expected_amount: Decimal


class DrawerMovementEntry(BaseModel):
    id: str
    date: datetime
    type: str
    amount: Decimal
    reference: str | None
    notes: str | None


class DrawerHistoryEntry(BaseModel):
    id: str
    date: datetime
    opened_at: datetime
    closed_at: datetime | None
    opening_balance: Decimal
    closing_balance: Decimal
    expected_amount: Decimal
    difference: Decimal
    status: str
    cashier: str
    denominations: dict[str, int] | None


class CashDrawerResponse(BaseModel):
    drawer_status: DrawerStatus
    transactions: list[DrawerMovementEntry]
    history: list[DrawerHistoryEntry]


class DenominationEntry(BaseModel):
    name: str
    value: Decimal


class DenominationListResponse(BaseModel):
    denominations: list[DenominationEntry]


class DrawerSessionSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    register_name: str = Field(alias="register")
    status: str
    opening_balance: Decimal
    expected_amount: Decimal
    counted_amount: Decimal | None
    difference: Decimal | None
    reconciliation_status: str | None
    opening_denominations: dict[str, int] | None
    closing_denominations: dict[str, int] | None
    opened_at: datetime
    closed_at: datetime | None


class CashDrawerActionResponse(BaseModel):
    action: str
    amount: Decimal
    session: DrawerSessionSummary
