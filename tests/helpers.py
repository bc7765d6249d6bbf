from __future__ import annotations

import uuid

from app.stockdesk.core.security import get_password_hash
from app.stockdesk.db.models import Product, Tenant, TenantSettings, User

PASSWORD = "Pass1234!"


def create_tenant_user(db_session, *, suffix: str, role: str = "ADMIN", tenant: Tenant | None = None, **fields):
    if tenant is None:
        tenant = Tenant(id=uuid.uuid4(), name=f"Tenant {suffix}")
        db_session.add(tenant)
    user = User(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        username=f"user-{suffix}",
        email=f"user-{suffix}@example.com",
        full_name=fields.pop("full_name", f"User {suffix}"),
        hashed_password=get_password_hash(fields.pop("password", PASSWORD)),
        role=role,
        status=fields.pop("status", "active"),
        must_change_password=fields.pop("must_change_password", False),
        is_active=fields.pop("is_active", True),
    )
    db_session.add(user)
    db_session.commit()
    return tenant, user


def configure_tenant(db_session, tenant, **fields):
    row = TenantSettings(
        tenant_id=tenant.id,
        business_name=fields.pop("business_name", tenant.name),
        tax_rate=fields.pop("tax_rate", 10.0),
        currency=fields.pop("currency", "$"),
        low_stock_threshold=fields.pop("low_stock_threshold", 10),
        track_inventory=fields.pop("track_inventory", True),
        **fields,
    )
    db_session.add(row)
    db_session.commit()
    return row


def login(client, username: str, password: str = PASSWORD) -> str:
    response = client.post(
        "/api/auth/login",
        json={"username_or_email": username, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def auth_headers(token: str, **extra: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", **extra}


def create_product(db_session, tenant, *, sku: str, name: str | None = None, price: float = 10.0, quantity: int = 20, **fields):
    product = Product(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        name=name or f"Product {sku}",
        sku=sku,
        price=price,
        quantity=quantity,
        **fields,
    )
    db_session.add(product)
    db_session.commit()
    return product
