from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field


class BusinessSettingsResponse(BaseModel):
    business_name: str | None
    address: str | None
    phone: str | None
    email: str | None
    tax_rate: Decimal
    currency: str
    receipt_footer: str | None
    low_stock_threshold: int
    track_inventory: bool


class BusinessSettingsUpdateRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {"business_name": "Corner Shop", "tax_rate": "7.25", "low_stock_threshold": 5}
        }
    }

    business_name: str | None = Field(default=None, max_length=255)
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    email: EmailStr | None = None
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    currency: str | None = Field(default=None, min_length=1, max_length=8)
    receipt_footer: str | None = Field(default=None, max_length=255)
    low_stock_threshold: int | None = Field(default=None, ge=0)
    track_inventory: bool | None = None
