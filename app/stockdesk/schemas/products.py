from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class ProductCreateRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Espresso Beans 1kg",
                "sku": "COF-ESP-1KG",
                "price": "24.90",
                "quantity": 40,
                "category": "Coffee",
                "vendor": "Roastery Co",
            }
        }
    }

    name: str = Field(min_length=1, max_length=255)
    sku: str = Field(min_length=1, max_length=100)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    quantity: int = Field(default=0, ge=0)
    category: str | None = Field(default=None, max_length=100)
    vendor: str | None = Field(default=None, max_length=100)
    weight: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    image_url: str | None = Field(default=None, max_length=500)

    @field_validator("name", "sku")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ProductUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    sku: str | None = Field(default=None, min_length=1, max_length=100)
    price: Decimal | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=100)
    vendor: str | None = Field(default=None, max_length=100)
    weight: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    image_url: str | None = Field(default=None, max_length=500)

    @field_validator("name", "sku")
    @classmethod
    def strip_optional(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ProductResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    sku: str
    price: Decimal
    quantity: int
    category: str | None
    vendor: str | None
    weight: Decimal | None
    description: str | None
    image_url: str | None
    stock_status: str
    created_at: datetime
    updated_at: datetime


class ProductListResponse(BaseModel):
    rows: list[ProductResponse]
    total: int


class ProductDeleteResponse(BaseModel):
    id: str
    deleted: bool


class SkuCheckResponse(BaseModel):
    sku: str
    exists: bool


class StockMovementRequest(BaseModel):
    type: Literal["in", "out", "adjustment"]
    quantity: int = Field(ge=0)
    reference: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=500)


class StockMovementResponse(BaseModel):
    id: str
    product_id: str | None
    product_name: str
    product_sku: str
    type: str
    quantity: int
    previous_quantity: int
    new_quantity: int
    reference: str | None
    notes: str | None
    sale_id: str | None
    user_id: str | None
    created_at: datetime


class StockMovementResult(BaseModel):
    product: ProductResponse
    movement: StockMovementResponse


class StockMovementListResponse(BaseModel):
    rows: list[StockMovementResponse]
    total: int
