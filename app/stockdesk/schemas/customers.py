from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

CustomerType = Literal["New", "Regular", "VIP"]


class CustomerCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=255)
    type: CustomerType = "New"
    notes: str | None = None


class CustomerUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=255)
    type: CustomerType | None = None
    notes: str | None = None


class PurchaseSummary(BaseModel):
    id: str
    reference: str
    date: datetime
    amount: Decimal
    items: int
    payment_method: str
    status: str


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: str | None
    address: str | None
    type: str
    notes: str | None
    total_spent: Decimal
    visits: int
    join_date: datetime
    last_visit: datetime | None
    created_at: datetime
    updated_at: datetime


class CustomerDetailResponse(CustomerResponse):
    purchase_history: list[PurchaseSummary]


class CustomerListResponse(BaseModel):
    rows: list[CustomerResponse]
    total: int


class CustomerDeleteResponse(BaseModel):
    id: str
    deleted: bool
    detached_transactions: int


class PurchaseListResponse(BaseModel):
    rows: list[PurchaseSummary]
    total: int
