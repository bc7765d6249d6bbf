from sqlalchemy import func, inspect, select

from app.stockdesk.db.models import Tenant, TenantSettings, User
from app.stockdesk.db.seed import run_seed
from tests.helpers import auth_headers


EXPECTED_TABLES = {
    "tenants",
    "users",
    "tenant_settings",
    "products",
    "stock_movements",
    "customers",
    "pos_transactions",
    "pos_transaction_items",
    "cash_drawer_sessions",
    "cash_drawer_movements",
    "idempotency_records",
    "audit_events",
}


def test_migrations_create_every_table(client, db_session):
    tables = set(inspect(db_session.get_bind()).get_table_names())

    assert EXPECTED_TABLES <= tables
    assert "alembic_version" in tables


def test_seed_is_idempotent_and_superadmin_can_log_in(client, db_session):
    run_seed(db_session)
    run_seed(db_session)

    assert db_session.execute(select(func.count()).select_from(Tenant)).scalar_one() == 1
    assert db_session.execute(select(func.count()).select_from(TenantSettings)).scalar_one() == 1
    superadmins = db_session.execute(select(User).where(User.username == "superadmin")).scalars().all()
    assert len(superadmins) == 1
    assert superadmins[0].role == "SUPERADMIN"

    response = client.post("/api/auth/login", json={"username_or_email": "superadmin", "password": "change-me"})
    assert response.status_code == 200
    me = client.get("/api/auth/me", headers=auth_headers(response.json()["access_token"])).json()
    assert me["role"] == "SUPERADMIN"
    assert "MANAGE_USERS" in me["permissions"]
