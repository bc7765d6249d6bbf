from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from app.stockdesk.core.config import settings
from app.stockdesk.repos.settings import TenantSettingsRepository


@dataclass(frozen=True)
class BusinessSettings:
    business_name: str | None
    address: str | None
    phone: str | None
    email: str | None
    tax_rate: Decimal
    currency: str
    receipt_footer: str | None
    low_stock_threshold: int
    track_inventory: bool


def default_business_settings() -> BusinessSettings:
    return BusinessSettings(
        business_name=None,
        address=None,
        phone=None,
        email=None,
        tax_rate=Decimal(str(settings.DEFAULT_TAX_RATE)),
        currency=settings.DEFAULT_CURRENCY,
        receipt_footer=None,
        low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
        track_inventory=True,
    )


def get_business_settings(db, tenant_id: str) -> BusinessSettings:
    row = TenantSettingsRepository(db).get_by_tenant_id(tenant_id)
    if row is None:
        return default_business_settings()
    return BusinessSettings(
        business_name=row.business_name,
        address=row.address,
        phone=row.phone,
        email=row.email,
        tax_rate=Decimal(str(row.tax_rate)),
        currency=row.currency,
        receipt_footer=row.receipt_footer,
        low_stock_threshold=row.low_stock_threshold,
        track_inventory=row.track_inventory,
    )
