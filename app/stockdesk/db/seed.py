from sqlalchemy import select

from app.stockdesk.core.config import settings
from app.stockdesk.core.security import get_password_hash
from app.stockdesk.db.models import Tenant, TenantSettings, User


def _get_or_create_tenant(db):
    tenant = db.execute(select(Tenant).where(Tenant.name == settings.DEFAULT_TENANT_NAME)).scalars().first()
    if tenant:
        return tenant
    tenant = Tenant(name=settings.DEFAULT_TENANT_NAME)
    db.add(tenant)
    db.flush()
    return tenant


def _get_or_create_settings(db, tenant):
    row = db.execute(select(TenantSettings).where(TenantSettings.tenant_id == tenant.id)).scalars().first()
    if row:
        return row
    row = TenantSettings(
        tenant_id=tenant.id,
        business_name=settings.DEFAULT_TENANT_NAME,
        tax_rate=settings.DEFAULT_TAX_RATE,
        currency=settings.DEFAULT_CURRENCY,
        low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
        track_inventory=True,
    )
    db.add(row)
    return row


def _get_or_create_superadmin(db, tenant):
    user = (
        db.execute(select(User).where(User.username == settings.SUPERADMIN_USERNAME, User.tenant_id == tenant.id))
        .scalars()
        .first()
    )
    if user:
        return user
    user = User(
        tenant_id=tenant.id,
        username=settings.SUPERADMIN_USERNAME,
        email=settings.SUPERADMIN_EMAIL,
        full_name="Super Admin",
        hashed_password=get_password_hash(settings.SUPERADMIN_PASSWORD),
        role="SUPERADMIN",
        status="active",
        must_change_password=False,
        is_active=True,
    )
    db.add(user)
    return user


def run_seed(db):
    tenant = _get_or_create_tenant(db)
    _get_or_create_settings(db, tenant)
    _get_or_create_superadmin(db, tenant)
    db.commit()
