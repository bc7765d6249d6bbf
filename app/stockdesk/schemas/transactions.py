from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

PaymentMethod = Literal["cash", "credit", "debit", "mobile", "check", "gift"]


class TransactionItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(gt=0)
    price: Decimal | None = Field(default=None, ge=0)


class TransactionCreateRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "items": [{"product_id": "3f0c1c8e-8b7a-4d8e-9a51-2f1f4c0f9a10", "quantity": 2}],
                "discount": "0.00",
                "payment_method": "cash",
                "customer_id": None,
                "notes": None,
            }
        },
        "populate_by_name": True,
    }

    items: list[TransactionItemCreate] = Field(min_length=1)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: PaymentMethod
    customer_id: UUID | None = None
    notes: str | None = Field(default=None, max_length=500)
    register_name: str | None = Field(default=None, alias="register", max_length=100)


class VoidTransactionRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


class TransactionLineResponse(BaseModel):
    product_id: str | None
    sku: str
    name: str
    quantity: int
    price: Decimal
    total: Decimal


class TransactionSummary(BaseModel):
    id: str
    reference: str
    date: datetime
    customer_id: str | None
    customer: str
    items: int
    cashier: str
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    payment_method: str
    status: str
    voided_at: datetime | None


class TransactionDetail(TransactionSummary):
    notes: str | None
    voided_by: str | None
    void_reason: str | None
    line_items: list[TransactionLineResponse]


class TransactionListResponse(BaseModel):
    rows: list[TransactionSummary]
    total: int
