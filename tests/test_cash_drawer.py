from datetime import date, datetime
import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from app.stockdesk.db.models import CashDrawerMovement, CashDrawerSession
from app.stockdesk.repos.cash_drawer import CashDrawerRepository
from tests.helpers import auth_headers, configure_tenant, create_product, create_tenant_user, login


def _drawer(client, headers, **payload):
    return client.post("/api/cash-drawer", headers=headers, json=payload)


def test_denominations_table(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="drawer-denoms", role="CASHIER")
    headers = auth_headers(login(client, user.username))

    response = client.get("/api/cash-drawer/denominations", headers=headers)

    assert response.status_code == 200
    names = [row["name"] for row in response.json()["denominations"]]
    assert names[0] == "$100 Bills"
    assert names[-1] == "Pennies"
    assert len(names) == 10


def test_drawer_full_shift(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="drawer-shift", role="CASHIER")
    configure_tenant(db_session, tenant, tax_rate=10.0)
    product = create_product(db_session, tenant, sku="DRW-1", price=10.0, quantity=20)
    headers = auth_headers(login(client, user.username))

    closed = client.get("/api/cash-drawer", headers=headers)
    assert closed.json()["drawer_status"]["is_open"] is False

    opened = _drawer(client, headers, action="open", denominations={"$20 Bills": 5})
    assert opened.status_code == 200
    assert opened.json()["amount"] == "100.00"
    assert opened.json()["session"]["opening_denominations"]["$20 Bills"] == 5
    assert opened.json()["session"]["opening_denominations"]["Pennies"] == 0

    again = _drawer(client, headers, action="open", amount="50")
    assert again.status_code == 409
    assert again.json()["code"] == "DRAWER_ALREADY_OPEN"

    no_reason = _drawer(client, headers, action="payout", amount="15")
    assert no_reason.status_code == 422

    payout = _drawer(client, headers, action="payout", amount="15", reason="Window cleaner")
    assert payout.json()["session"]["expected_amount"] == "85.00"

    cash_in = _drawer(client, headers, action="cash_in", amount="5")
    assert cash_in.json()["session"]["expected_amount"] == "90.00"

    cash_sale = client.post(
        "/api/transactions",
        headers=headers,
        json={"items": [{"product_id": str(product.id), "quantity": 2}], "payment_method": "cash"},
    )
    assert cash_sale.status_code == 201
    assert cash_sale.json()["total"] == "22.00"

    card_sale = client.post(
        "/api/transactions",
        headers=headers,
        json={"items": [{"product_id": str(product.id), "quantity": 1}], "payment_method": "credit"},
    )
    assert card_sale.status_code == 201

    status = client.get("/api/cash-drawer", headers=headers).json()
    drawer = status["drawer_status"]
    assert drawer["is_open"] is True
    assert drawer["opening_balance"] == "100.00"
    assert drawer["cash_sales"] == "22.00"
    assert drawer["card_sales"] == "11.00"
    assert drawer["cash_payouts"] == "15.00"
    assert drawer["cash_in"] == "5.00"
    assert drawer["expected_amount"] == "112.00"
    amounts = {entry["type"]: entry["amount"] for entry in status["transactions"]}
    assert amounts["payout"] == "-15.00"
    assert amounts["cash_sale"] == "22.00"

    close = _drawer(client, headers, action="close", amount="112.00")
    assert close.status_code == 200
    assert close.json()["session"]["status"] == "CLOSED"
    assert close.json()["session"]["reconciliation_status"] == "Balanced"
    assert close.json()["session"]["difference"] == "0.00"

    after = client.get("/api/cash-drawer", headers=headers).json()
    assert after["drawer_status"]["is_open"] is False
    assert len(after["history"]) == 1
    assert after["history"][0]["status"] == "Balanced"
    assert after["history"][0]["closing_balance"] == "112.00"

    late_payout = _drawer(client, headers, action="payout", amount="1", reason="late")
    assert late_payout.status_code == 409
    assert late_payout.json()["code"] == "DRAWER_NOT_OPEN"


def test_close_with_discrepancy_from_denominations(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="drawer-short")
    headers = auth_headers(login(client, user.username))

    _drawer(client, headers, action="open", amount="50")
    close = _drawer(client, headers, action="close", denominations={"$20 Bills": 2, "$5 Bills": 1, "Quarters": 3})

    session = close.json()["session"]
    assert session["counted_amount"] == "45.75"
    assert session["difference"] == "-4.25"
    assert session["reconciliation_status"] == "Discrepancy"
    assert session["closing_denominations"]["Quarters"] == 3


def test_payout_cannot_overdraw_drawer(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="drawer-over")
    headers = auth_headers(login(client, user.username))
    _drawer(client, headers, action="open", amount="10")

    response = _drawer(client, headers, action="payout", amount="10.01", reason="too much")

    assert response.status_code == 422
    assert db_session.query(CashDrawerMovement).filter(CashDrawerMovement.action == "PAYOUT").count() == 0


def test_unknown_action_and_denomination(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="drawer-bad")
    headers = auth_headers(login(client, user.username))

    assert _drawer(client, headers, action="explode").status_code == 422
    unknown = _drawer(client, headers, action="open", denominations={"$3 Bills": 1})
    assert unknown.status_code == 422
    assert unknown.json()["code"] == "UNKNOWN_DENOMINATION"


def test_warehouse_role_cannot_operate_drawer(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="drawer-wh", role="WAREHOUSE")
    headers = auth_headers(login(client, user.username))

    response = _drawer(client, headers, action="open", amount="10")

    assert response.status_code == 403
    assert response.json()["details"] == {"permission": "OPEN_REGISTER"}


def _session_row(tenant, user, *, status: str, register: str = "Main Register") -> CashDrawerSession:
    now = datetime.utcnow()
    return CashDrawerSession(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        register=register,
        status=status,
        business_date=date.today(),
        opened_by_user_id=user.id,
        opened_by_name=user.username,
        opening_amount=0.0,
        expected_cash=0.0,
        opened_at=now,
        created_at=now,
    )


def test_database_allows_one_open_session_per_register(client, db_session):
    tenant, user = create_tenant_user(db_session, suffix="drawer-unique")
    db_session.add_all([_session_row(tenant, user, status="CLOSED"), _session_row(tenant, user, status="CLOSED")])
    db_session.add(_session_row(tenant, user, status="OPEN"))
    db_session.add(_session_row(tenant, user, status="OPEN", register="Back Register"))
    db_session.commit()

    db_session.add(_session_row(tenant, user, status="OPEN"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_concurrent_open_maps_to_already_open(client, db_session, monkeypatch):
    _tenant, user = create_tenant_user(db_session, suffix="drawer-race", role="CASHIER")
    headers = auth_headers(login(client, user.username))
    # Both requests miss each other's session, as two concurrent opens would.
    monkeypatch.setattr(CashDrawerRepository, "get_open_session", lambda self, *args, **kwargs: None)

    first = _drawer(client, headers, action="open", amount="10")
    second = _drawer(client, headers, action="open", amount="10")

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["code"] == "DRAWER_ALREADY_OPEN"
    assert db_session.query(CashDrawerSession).filter(CashDrawerSession.status == "OPEN").count() == 1


def test_register_field_round_trips_under_its_public_name(client, db_session):
    _tenant, user = create_tenant_user(db_session, suffix="drawer-register", role="CASHIER")
    headers = auth_headers(login(client, user.username), **{"Idempotency-Key": "open-back"})

    first = _drawer(client, headers, action="open", amount="40", register="Back Register")
    replay = _drawer(client, headers, action="open", amount="40", register="Back Register")
    status = client.get("/api/cash-drawer", headers=headers, params={"register": "Back Register"}).json()

    assert first.status_code == 200
    assert first.json()["session"]["register"] == "Back Register"
    assert "register_name" not in first.json()["session"]
    assert replay.headers["X-Idempotency-Result"] == "IDEMPOTENCY_REPLAY"
    assert replay.json()["session"]["register"] == "Back Register"
    assert status["drawer_status"]["register"] == "Back Register"
    assert status["drawer_status"]["is_open"] is True
